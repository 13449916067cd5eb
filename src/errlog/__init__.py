"""Error, trace and statistics reporting client for the errlog collector."""

from .client import Errlog, get_client, initialize, shutdown
from .codec import decode_payload, encode_report
from .config import ErrlogConfig
from .constants import LogLevel, ReportCode
from .errors import (
    CallerArgumentError,
    ConfigError,
    DeliveryFailure,
    EncodingFailure,
    ErrlogError,
    PayloadIntegrityError,
)
from .identity import DeviceMetadata, FileIdentitySource, IdentitySource, random_id
from .log_ring import LogRing
from .logging import ErrlogLogger
from .models import EncodedPayload, ExceptionInfo, LogEntry, Report, ReportContext
from .report import ReportBuilder
from .transport import send_report

__all__ = [
    "Errlog",
    "initialize",
    "get_client",
    "shutdown",
    "ErrlogConfig",
    "ErrlogLogger",
    "LogLevel",
    "ReportCode",
    "LogRing",
    "LogEntry",
    "Report",
    "ReportBuilder",
    "ReportContext",
    "ExceptionInfo",
    "EncodedPayload",
    "encode_report",
    "decode_payload",
    "send_report",
    "DeviceMetadata",
    "IdentitySource",
    "FileIdentitySource",
    "random_id",
    "ErrlogError",
    "CallerArgumentError",
    "ConfigError",
    "DeliveryFailure",
    "EncodingFailure",
    "PayloadIntegrityError",
]
