from __future__ import annotations

import queue
import threading
import time
from typing import Callable, List, Optional

from .config import OverflowPolicy
from .logging import ErrlogLogger

SendFn = Callable[[bytes], bool]

_STOP = object()


class Dispatcher:
    """
    Hands encoded payloads to a small pool of background worker threads.

    submit() never blocks: when ``max_pending`` payloads are already queued,
    the overflow policy drops either the new payload or the oldest queued one.
    Send failures are logged and dropped; callers are never notified.
    """

    def __init__(
        self,
        send: SendFn,
        max_workers: int = 2,
        max_pending: int = 64,
        overflow_policy: OverflowPolicy = "drop_new",
        logger: Optional[ErrlogLogger] = None,
    ) -> None:
        if overflow_policy not in ("drop_new", "drop_oldest"):
            raise ValueError(f"unknown overflow policy: {overflow_policy}")
        self._send = send
        self.max_workers = max_workers
        self.overflow_policy = overflow_policy
        self.logger = logger
        self._queue: "queue.Queue[object]" = queue.Queue(maxsize=max_pending)
        self._workers: List[threading.Thread] = []
        self._lock = threading.Lock()
        self._idle = threading.Condition(self._lock)
        self._outstanding = 0
        self._closed = False

        self.submitted = 0
        self.dropped = 0
        self.failed = 0

    def submit(self, payload: bytes) -> bool:
        """Queue one payload. Returns False if it was rejected."""
        with self._lock:
            if self._closed:
                self._log_drop("dispatcher_closed")
                return False
            self._ensure_workers()
            try:
                self._queue.put_nowait(payload)
            except queue.Full:
                if self.overflow_policy == "drop_new":
                    self._log_drop("queue_full")
                    return False
                self._evict_oldest()
                self._queue.put_nowait(payload)
            self._outstanding += 1
            self.submitted += 1
        return True

    def flush(self, timeout: Optional[float] = None) -> bool:
        """Wait until every accepted payload was processed. True if drained."""
        deadline = None if timeout is None else time.monotonic() + timeout
        with self._idle:
            while self._outstanding:
                remaining = None if deadline is None else deadline - time.monotonic()
                if remaining is not None and remaining <= 0:
                    return False
                self._idle.wait(remaining)
        return True

    def close(self, timeout: Optional[float] = None) -> bool:
        """Stop accepting payloads, drain the queue and stop the workers."""
        with self._lock:
            if self._closed:
                return True
            self._closed = True
            workers = list(self._workers)
        drained = self.flush(timeout)
        if not drained:
            # Workers are daemon threads; leave them to finish or die with the process.
            return False
        for _ in workers:
            self._queue.put(_STOP)
        for worker in workers:
            worker.join(timeout)
        return drained

    @property
    def pending(self) -> int:
        with self._lock:
            return self._outstanding

    def _ensure_workers(self) -> None:
        while len(self._workers) < self.max_workers:
            worker = threading.Thread(
                target=self._run,
                name=f"errlog-dispatch-{len(self._workers)}",
                daemon=True,
            )
            worker.start()
            self._workers.append(worker)

    def _evict_oldest(self) -> None:
        try:
            self._queue.get_nowait()
        except queue.Empty:
            return
        self._queue.task_done()
        self._outstanding -= 1
        self._log_drop("evicted_oldest")

    def _log_drop(self, reason: str) -> None:
        self.dropped += 1
        if self.logger:
            self.logger.warning("Report dropped", reason=reason, dropped_total=self.dropped)

    def _run(self) -> None:
        while True:
            item = self._queue.get()
            try:
                if item is _STOP:
                    return
                self._deliver(item)  # type: ignore[arg-type]
            finally:
                self._queue.task_done()
                if item is not _STOP:
                    self._finish_one()

    def _deliver(self, payload: bytes) -> None:
        try:
            delivered = self._send(payload)
        except Exception as exc:
            delivered = False
            if self.logger:
                self.logger.error("Report delivery crashed", error=str(exc))
        if not delivered:
            with self._lock:
                self.failed += 1

    def _finish_one(self) -> None:
        with self._idle:
            self._outstanding -= 1
            if self._outstanding == 0:
                self._idle.notify_all()
