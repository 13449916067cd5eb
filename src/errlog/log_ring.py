from __future__ import annotations

import threading
from collections import deque
from typing import Tuple

from .constants import Limits
from .models import LogEntry


class LogRing:
    """
    Bounded buffer of the most recent log lines.

    Appending past capacity evicts the oldest entry. The lock is held only
    while mutating or copying, never during encoding or I/O.
    """

    def __init__(self, capacity: int = Limits.LOG_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {capacity}")
        self.capacity = capacity
        self._entries: deque[LogEntry] = deque(maxlen=capacity)
        self._lock = threading.Lock()

    def append(self, entry: LogEntry) -> None:
        with self._lock:
            self._entries.append(entry)

    def snapshot(self) -> Tuple[LogEntry, ...]:
        """Immutable copy, oldest first."""
        with self._lock:
            return tuple(self._entries)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
