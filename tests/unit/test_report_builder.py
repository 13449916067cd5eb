from __future__ import annotations

import pytest

from errlog.constants import LogLevel, ReportCode
from errlog.errors import CallerArgumentError
from errlog.models import LogEntry
from errlog.report import CAUSE_MARKER, ReportBuilder, build_fields, describe_exception, exception_info


class ChainError(Exception):
    pass


def _raise_chain() -> None:
    try:
        try:
            raise ChainError("errC")
        except ChainError as c:
            raise ChainError("errB") from c
    except ChainError as b:
        raise ChainError("errA") from b


def test_odd_extra_args_rejected() -> None:
    with pytest.raises(CallerArgumentError):
        build_fields("component", "net", ["retry"])


def test_empty_required_value_rejected() -> None:
    with pytest.raises(CallerArgumentError):
        build_fields("event_name", "", [])


def test_caller_argument_error_is_value_error() -> None:
    with pytest.raises(ValueError):
        ReportBuilder().build(ReportCode.TRACE, "net", "msg", extra_args=("a", 1, "b"))


def test_all_pairs_present_and_keys_stringified() -> None:
    fields = build_fields("component", "net", ["retry", 3, 7, "seven", "ok", True])
    assert fields == {"component": "net", "retry": 3, "7": "seven", "ok": True}


def test_last_write_wins_on_duplicate_keys() -> None:
    fields = build_fields("component", "net", ["k", 1, "k", 2])
    assert fields["k"] == 2


def test_build_without_error_attaches_log() -> None:
    log = (LogEntry(level=LogLevel.WARN, timestamp=1, text="db: slow"),)
    report = ReportBuilder().build(ReportCode.WARNING, "db", "slow query", extra_args=("ms", 950), log=log)

    assert report.severity == 50
    assert report.text == "slow query"
    assert report.fields == {"component": "db", "ms": 950}
    assert report.log == log
    assert report.exception is None


def test_build_with_error_appends_description() -> None:
    try:
        raise TimeoutError("upstream")
    except TimeoutError as exc:
        report = ReportBuilder().build(ReportCode.ERROR, "net", "timeout", error=exc)

    assert report.text == "timeout: TimeoutError: upstream"
    assert report.exception is not None
    assert report.exception.class_name == "TimeoutError"
    assert report.exception.stack_frames
    assert report.exception.stack_frames[-1].startswith('File "')


def test_qualified_class_name_for_custom_exception() -> None:
    info = exception_info(ChainError("x"))
    assert info.class_name.endswith("ChainError")
    assert "." in info.class_name


def test_cause_chain_frames_in_order() -> None:
    try:
        _raise_chain()
    except ChainError as exc:
        info = exception_info(exc)

    stack = list(info.stack_frames)
    marker_b = f"{CAUSE_MARKER}errB"
    marker_c = f"{CAUSE_MARKER}errC"
    ib = stack.index(marker_b)
    ic = stack.index(marker_c)

    assert info.cause_chain == (marker_b, marker_c)
    assert 0 < ib < ic < len(stack) - 1
    assert all(s.startswith('File "') for s in stack[:ib])
    assert all(s.startswith('File "') for s in stack[ib + 1 : ic])
    assert all(s.startswith('File "') for s in stack[ic + 1 :])
    assert ib + 1 < ic


def test_cause_cycle_is_bounded() -> None:
    a = ChainError("a")
    b = ChainError("b")
    a.__cause__ = b
    b.__cause__ = a

    info = exception_info(a, max_depth=5)
    assert len(info.cause_chain) == 4


def test_suppressed_context_is_not_followed() -> None:
    try:
        try:
            raise ChainError("inner")
        except ChainError:
            raise ChainError("outer") from None
    except ChainError as exc:
        info = exception_info(exc)

    assert info.cause_chain == ()


def test_implicit_context_is_followed() -> None:
    try:
        try:
            raise ChainError("inner")
        except ChainError:
            raise ChainError("outer")
    except ChainError as exc:
        info = exception_info(exc)

    assert info.cause_chain == (f"{CAUSE_MARKER}inner",)


def test_describe_exception() -> None:
    assert describe_exception(ValueError("bad")) == "ValueError: bad"


def test_stats_report_has_no_text_or_log() -> None:
    report = ReportBuilder().build_stats("stype", "session_finished", ["duration", 12])
    assert report.severity == ReportCode.STAT_DATA
    assert report.text is None
    assert report.log == ()
    assert report.fields == {"stype": "session_finished", "duration": 12}


def test_unraised_exception_uses_current_stack() -> None:
    info = exception_info(TimeoutError("never raised"))

    assert info.stack_frames
    assert info.stack_frames[-1].endswith("in test_unraised_exception_uses_current_stack")
    assert info.cause_chain == ()


def test_raised_exception_does_not_include_current_stack() -> None:
    def fail() -> None:
        raise ChainError("raised")

    try:
        fail()
    except ChainError as exc:
        info = exception_info(exc)

    assert [f.rsplit(" in ", 1)[1] for f in info.stack_frames] == [
        "test_raised_exception_does_not_include_current_stack",
        "fail",
    ]
