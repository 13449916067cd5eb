from __future__ import annotations

import os
import traceback
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .constants import Limits, ReportCode
from .errors import CallerArgumentError
from .models import ExceptionInfo, LogEntry, Report

CAUSE_MARKER = "--- Caused by: "
_PACKAGE_DIR = os.path.dirname(os.path.abspath(__file__)) + os.sep


def build_fields(name: str, value: str, args: Sequence[Any]) -> Dict[str, Any]:
    """
    Build a report mapping from one required pair plus ``key, value, ...`` args.

    Keys are converted to strings, values are kept as is. Later keys
    overwrite earlier ones.

    Raises:
        CallerArgumentError: odd number of args or empty required pair.
    """
    if len(args) % 2 == 1:
        raise CallerArgumentError("errlog accepts only an even number of extra args")
    if not name or not value:
        raise CallerArgumentError("errlog required parameter is not set")

    data: Dict[str, Any] = {name: value}
    for index in range(0, len(args), 2):
        data[str(args[index])] = args[index + 1]
    return data


def describe_exception(exc: BaseException) -> str:
    """``ClassName: message`` the way tracebacks print it."""
    return traceback.format_exception_only(type(exc), exc)[-1].strip()


def qualified_name(cls: type) -> str:
    module = cls.__module__
    if module in (None, "builtins"):
        return cls.__qualname__
    return f"{module}.{cls.__qualname__}"


def _format_frame(frame: traceback.FrameSummary) -> str:
    return f'File "{frame.filename}", line {frame.lineno}, in {frame.name}'


def _cause_of(exc: BaseException) -> Optional[BaseException]:
    if exc.__cause__ is not None:
        return exc.__cause__
    if exc.__suppress_context__:
        return None
    return exc.__context__


def _caller_frames() -> List[traceback.FrameSummary]:
    """Current stack without errlog's own frames."""
    return [f for f in traceback.extract_stack() if not f.filename.startswith(_PACKAGE_DIR)]


def exception_info(exc: BaseException, max_depth: int = Limits.MAX_CAUSE_DEPTH) -> ExceptionInfo:
    """
    Collect frames of ``exc`` and its causes, outermost exception first.

    An exception that was never raised has no traceback; the stack of the
    reporting call stands in for it.
    """
    frames: List[str] = []
    if exc.__traceback__ is None:
        frames.extend(_format_frame(f) for f in _caller_frames())
    chain: List[str] = []
    current: Optional[BaseException] = exc
    depth = 0
    while current is not None:
        frames.extend(_format_frame(f) for f in traceback.extract_tb(current.__traceback__))
        depth += 1
        if depth >= max_depth:
            break
        current = _cause_of(current)
        if current is not None:
            marker = f"{CAUSE_MARKER}{current}"
            chain.append(marker)
            frames.append(marker)
    return ExceptionInfo(
        class_name=qualified_name(type(exc)),
        stack_frames=tuple(frames),
        cause_chain=tuple(chain),
    )


class ReportBuilder:
    """Turns a log/report call into an immutable Report. No I/O."""

    def __init__(self, max_cause_depth: int = Limits.MAX_CAUSE_DEPTH) -> None:
        self.max_cause_depth = max_cause_depth

    def build(
        self,
        code: int,
        tag: str,
        text: Optional[str],
        error: Optional[BaseException] = None,
        extra_args: Sequence[Any] = (),
        log: Tuple[LogEntry, ...] = (),
        key: str = "component",
    ) -> Report:
        fields = build_fields(key, tag, extra_args)

        info: Optional[ExceptionInfo] = None
        if error is not None:
            info = exception_info(error, self.max_cause_depth)
            text = f"{text}: {describe_exception(error)}"

        return Report(
            severity=int(code),
            text=text,
            fields=fields,
            log=tuple(log),
            exception=info,
        )

    def build_stats(self, key: str, value: str, extra_args: Sequence[Any] = ()) -> Report:
        """Statistics reports carry no text and no log."""
        return Report(severity=int(ReportCode.STAT_DATA), fields=build_fields(key, value, extra_args))
