from __future__ import annotations

import json
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Protocol, TextIO

LEVELS = {"debug": 10, "info": 20, "warning": 30, "error": 40}
SECRET_KEY_MARKERS = ("token", "secret", "password", "api_key", "apikey")


def _looks_secret(key: str) -> bool:
    lowered = key.lower()
    return any(marker in lowered for marker in SECRET_KEY_MARKERS)


class PlatformLogger(Protocol):
    """Anything that can echo log calls locally."""

    def debug(self, message: str, **kwargs: Any) -> None: ...

    def info(self, message: str, **kwargs: Any) -> None: ...

    def warning(self, message: str, **kwargs: Any) -> None: ...

    def error(self, message: str, **kwargs: Any) -> None: ...


class ErrlogLogger:
    """Structured JSON-lines logger writing to stderr."""

    def __init__(self, name: str = "errlog", level: str = "info", stream: Optional[TextIO] = None):
        self.name = name
        self.level = level.lower()
        self._threshold = LEVELS.get(self.level, LEVELS["info"])
        self._stream = stream

    def debug(self, message: str, **kwargs: Any) -> None:
        self._emit("debug", message, **kwargs)

    def info(self, message: str, **kwargs: Any) -> None:
        self._emit("info", message, **kwargs)

    def warning(self, message: str, **kwargs: Any) -> None:
        self._emit("warning", message, **kwargs)

    def error(self, message: str, **kwargs: Any) -> None:
        self._emit("error", message, **kwargs)

    def child(self, name: str) -> "ErrlogLogger":
        return ErrlogLogger(name, level=self.level, stream=self._stream)

    def _emit(self, level: str, message: str, **kwargs: Any) -> None:
        """Emit one structured JSON line if the level passes the threshold."""
        if LEVELS[level] < self._threshold:
            return

        payload: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": level,
            "logger": self.name,
            "message": message,
        }
        for key, value in kwargs.items():
            payload[key] = "***" if _looks_secret(key) else value

        line = json.dumps(payload, ensure_ascii=False, default=str)
        # Text from surrogateescape paths is not encodable; escape it rather than fail.
        line = line.encode("utf-8", "backslashreplace").decode("utf-8")

        # Resolved per call so pytest's capsys sees the output.
        stream = self._stream or sys.stderr
        stream.write(line + "\n")
        stream.flush()
