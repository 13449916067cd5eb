from __future__ import annotations

from enum import IntEnum

PLATFORM = "python"
DEFAULT_COLLECTOR_URL = "http://errorlog.co"
FORMAT_TAG = 0x01  # JSON, gzip, sha256 tag, not encrypted
DIGEST_SIZE = 32
INTERNAL_TAG = "errlog"


class ReportCode(IntEnum):
    """Report type/severity sent as ``severity``."""

    TRACE = 1
    NOT_FOUND = 49
    WARNING = 50
    ERROR = 100
    STAT_DATA = 1001


class LogLevel(IntEnum):
    """Level of a buffered log line."""

    DEBUG = 1
    WARN = 2
    ERROR = 3


class Limits:
    """Shared hard limits."""

    LOG_CAPACITY = 100
    MAX_CAUSE_DEPTH = 50
    INSTANCE_ID_LENGTH = 32
