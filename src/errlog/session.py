from __future__ import annotations

import threading
import time
from typing import Optional


def _now_ms() -> int:
    return int(time.time() * 1000)


class Session:
    """Process-wide usage session timer."""

    def __init__(self) -> None:
        self.started_at_ms: Optional[int] = None
        self._lock = threading.Lock()

    @property
    def active(self) -> bool:
        return self.started_at_ms is not None

    def start(self) -> bool:
        """Start the session. False if one is already running."""
        with self._lock:
            if self.started_at_ms is not None:
                return False
            self.started_at_ms = _now_ms()
            return True

    def stop(self) -> Optional[int]:
        """Stop the session and return its duration in seconds, or None if not started."""
        with self._lock:
            if self.started_at_ms is None:
                return None
            duration = (_now_ms() - self.started_at_ms) // 1000
            self.started_at_ms = None
            return duration
