from __future__ import annotations

import sys
import threading
from types import TracebackType
from typing import Callable, Optional, Type

ReportFn = Callable[[BaseException, str], None]
FlushFn = Callable[[], object]


class CrashHandler:
    """
    Reports uncaught exceptions, then always defers to the previous handler.

    Installed into both ``sys.excepthook`` (main thread) and
    ``threading.excepthook`` (other threads).
    """

    def __init__(self, report: ReportFn, flush: Optional[FlushFn] = None) -> None:
        self._report = report
        self._flush = flush
        self._previous_excepthook: Optional[Callable[..., object]] = None
        self._previous_threading_hook: Optional[Callable[..., object]] = None
        self.installed = False

    def install(self) -> "CrashHandler":
        if self.installed:
            return self
        self._previous_excepthook = sys.excepthook
        self._previous_threading_hook = threading.excepthook
        sys.excepthook = self.excepthook
        threading.excepthook = self.threading_excepthook
        self.installed = True
        return self

    def uninstall(self) -> None:
        if not self.installed:
            return
        # Only restore hooks that still point at us.
        if sys.excepthook == self.excepthook:
            sys.excepthook = self._previous_excepthook or sys.__excepthook__
        if threading.excepthook == self.threading_excepthook:
            threading.excepthook = self._previous_threading_hook or threading.__excepthook__
        self.installed = False

    def excepthook(
        self,
        exc_type: Type[BaseException],
        exc: BaseException,
        tb: Optional[TracebackType],
    ) -> None:
        try:
            self._handle(exc, threading.current_thread().name)
        finally:
            previous = self._previous_excepthook or sys.__excepthook__
            previous(exc_type, exc, tb)

    def threading_excepthook(self, args: "threading.ExceptHookArgs") -> None:
        try:
            if args.exc_value is not None:
                thread_name = args.thread.name if args.thread is not None else "unknown"
                self._handle(args.exc_value, thread_name)
        finally:
            previous = self._previous_threading_hook or threading.__excepthook__
            previous(args)

    def _handle(self, exc: BaseException, thread_name: str) -> None:
        if not isinstance(exc, Exception):
            return
        try:
            self._report(exc, thread_name)
            if self._flush is not None:
                self._flush()
        except Exception as report_exc:
            sys.stderr.write(f"errlog: cannot report uncaught exception: {report_exc}\n")
