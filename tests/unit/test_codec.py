from __future__ import annotations

import gzip
import hashlib
import json

import pytest

from errlog.codec import decode_payload, encode_report, merge_fields
from errlog.constants import DIGEST_SIZE, FORMAT_TAG, LogLevel
from errlog.errors import EncodingFailure, PayloadIntegrityError
from errlog.models import ExceptionInfo, LogEntry, Report, ReportContext

SECRET = b"s3cr3t"


def _context() -> ReportContext:
    return ReportContext(
        application="MyApp",
        instance_id="inst-0001",
        hw_model="x86_64",
        hw_manufacturer="Linux",
        os_version="6.1",
        version="1.2.3",
    )


def _report() -> Report:
    return Report(
        severity=100,
        text="timeout: TimeoutError: upstream",
        fields={"component": "net", "retry": 3, "application": "Spoofed"},
        log=(LogEntry(level=LogLevel.ERROR, timestamp=1_700_000_000, text="net: timeout"),),
        exception=ExceptionInfo(class_name="TimeoutError", stack_frames=('File "a.py", line 1, in f',)),
    )


def test_frame_layout_and_digest() -> None:
    payload = encode_report(_report(), _context(), SECRET)
    data = payload.to_bytes()

    assert data[0] == FORMAT_TAG == 0x01
    body = data[1:-DIGEST_SIZE]
    assert body == payload.body
    assert data[-DIGEST_SIZE:] == hashlib.sha256(body + SECRET).digest()
    assert len(payload) == len(data)


def test_body_decompresses_to_merged_json() -> None:
    payload = encode_report(_report(), _context(), SECRET)
    decoded = json.loads(gzip.decompress(payload.body).decode("utf-8"))

    assert decoded == merge_fields(_report(), _context())
    assert decoded["severity"] == 100
    assert decoded["component"] == "net"
    assert decoded["retry"] == 3
    assert decoded["log"] == [[3, 1_700_000_000, None, "net: timeout"]]
    assert decoded["exception_class"] == "TimeoutError"
    assert decoded["stack"] == ['File "a.py", line 1, in f']
    assert decoded["platform"] == "python"
    assert decoded["instance_id"] == "inst-0001"


def test_metadata_wins_over_caller_fields() -> None:
    decoded = decode_payload(encode_report(_report(), _context(), SECRET).to_bytes(), SECRET)
    assert decoded["application"] == "MyApp"


def test_encoding_is_deterministic() -> None:
    first = encode_report(_report(), _context(), SECRET)
    second = encode_report(_report(), _context(), SECRET)
    assert first == second


def test_optional_fields_omitted() -> None:
    decoded = decode_payload(
        encode_report(Report(severity=1001, fields={"stype": "x"}), _context(), SECRET).to_bytes(),
        SECRET,
    )
    assert "text" not in decoded
    assert "log" not in decoded
    assert "stack" not in decoded


def test_unserializable_value_is_encoding_failure() -> None:
    report = Report(severity=1, text="t", fields={"component": "x", "obj": object()})
    with pytest.raises(EncodingFailure):
        encode_report(report, _context(), SECRET)


def test_decode_rejects_wrong_secret() -> None:
    data = encode_report(_report(), _context(), SECRET).to_bytes()
    with pytest.raises(PayloadIntegrityError, match="digest"):
        decode_payload(data, b"other")


def test_decode_rejects_tampered_body() -> None:
    data = bytearray(encode_report(_report(), _context(), SECRET).to_bytes())
    data[5] ^= 0xFF
    with pytest.raises(PayloadIntegrityError):
        decode_payload(bytes(data), SECRET)


def test_decode_rejects_unknown_format_tag() -> None:
    data = b"\x02" + encode_report(_report(), _context(), SECRET).to_bytes()[1:]
    with pytest.raises(PayloadIntegrityError, match="format tag"):
        decode_payload(data, SECRET)


def test_decode_rejects_short_frame() -> None:
    with pytest.raises(PayloadIntegrityError):
        decode_payload(b"\x01abc", SECRET)


def test_nan_value_is_encoding_failure() -> None:
    report = Report(severity=1, text="t", fields={"component": "x", "latency": float("nan")})
    with pytest.raises(EncodingFailure):
        encode_report(report, _context(), SECRET)


def test_lone_surrogate_is_encoding_failure() -> None:
    report = Report(severity=50, text="bad \udcff path", fields={"component": "fs"})
    with pytest.raises(EncodingFailure):
        encode_report(report, _context(), SECRET)
