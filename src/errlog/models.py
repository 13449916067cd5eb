from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .constants import FORMAT_TAG, PLATFORM, LogLevel


@dataclass(frozen=True)
class LogEntry:
    level: LogLevel
    timestamp: int  # epoch seconds
    text: str
    reserved: None = None

    def as_json(self) -> List[Any]:
        return [int(self.level), self.timestamp, self.reserved, self.text]


@dataclass(frozen=True)
class ExceptionInfo:
    class_name: str
    # Frames of every chain level in order, with "--- Caused by: ..." markers between levels
    stack_frames: Tuple[str, ...]
    cause_chain: Tuple[str, ...] = ()


@dataclass(frozen=True)
class Report:
    severity: int
    text: Optional[str] = None
    fields: Mapping[str, Any] = field(default_factory=dict)
    log: Tuple[LogEntry, ...] = ()
    exception: Optional[ExceptionInfo] = None

    def to_fields(self) -> Dict[str, Any]:
        """Flatten into wire fields, before process metadata is merged."""
        data: Dict[str, Any] = dict(self.fields)
        if self.log:
            data["log"] = [entry.as_json() for entry in self.log]
        if self.exception is not None:
            data["exception_class"] = self.exception.class_name
            data["stack"] = list(self.exception.stack_frames)
        data["severity"] = int(self.severity)
        if self.text is not None:
            data["text"] = self.text
        return data


@dataclass(frozen=True)
class ReportContext:
    """Process-wide metadata merged into every report."""

    application: str
    instance_id: str
    hw_model: str = ""
    hw_manufacturer: str = ""
    os_version: str = ""
    version: str = ""
    platform: str = PLATFORM

    def as_fields(self) -> Dict[str, Any]:
        return {
            "platform": self.platform,
            "application": self.application,
            "instance_id": self.instance_id,
            "hw_model": self.hw_model,
            "hw_manufacturer": self.hw_manufacturer,
            "os_version": self.os_version,
            "version": self.version,
        }


@dataclass(frozen=True)
class EncodedPayload:
    body: bytes  # gzip-compressed UTF-8 JSON
    digest: bytes  # sha256(body + secret)
    format_tag: int = FORMAT_TAG

    def to_bytes(self) -> bytes:
        return bytes([self.format_tag]) + self.body + self.digest

    def __len__(self) -> int:
        return 1 + len(self.body) + len(self.digest)
