from __future__ import annotations

import functools
import threading
import time
from typing import Any, Dict, Optional

from pydantic import ValidationError

from .codec import encode_report
from .config import ErrlogConfig
from .constants import INTERNAL_TAG, LogLevel, ReportCode
from .dispatcher import Dispatcher, SendFn
from .errors import ConfigError, EncodingFailure
from .hooks import CrashHandler
from .identity import FileIdentitySource, IdentitySource
from .log_ring import LogRing
from .logging import ErrlogLogger, PlatformLogger
from .models import LogEntry, Report, ReportContext
from .report import ReportBuilder, build_fields, describe_exception
from .session import Session
from .transport import send_report


def _tag_text(tag: Optional[str], message: str) -> str:
    if tag:
        return f"{tag}: {message}"
    return message


def _format(message: str, params: tuple) -> str:
    if params:
        return message % params
    return message


class Errlog:
    """
    Errlog client: buffers recent log lines and reports errors, warnings,
    traces and statistics to the collector.

    Reports are built and encoded on the calling thread and uploaded by
    background workers. Nothing here raises into the host application except
    CallerArgumentError for malformed extra arguments.
    """

    def __init__(
        self,
        config: ErrlogConfig,
        identity: Optional[IdentitySource] = None,
        logger: Optional[ErrlogLogger] = None,
        platform_logger: Optional[PlatformLogger] = None,
        send: Optional[SendFn] = None,
    ) -> None:
        self.config = config
        self.logger = logger or ErrlogLogger(INTERNAL_TAG, level=config.log_level)
        self.platform_logger: PlatformLogger = platform_logger or self.logger.child("app")
        self.identity = identity or FileIdentitySource(
            config.resolved_state_dir(),
            app_name=config.app_name,
            app_version=config.app_version,
            logger=self.logger,
        )
        self._secret = config.secret_bytes()
        self.ring = LogRing(config.log_capacity)
        self.builder = ReportBuilder()
        self.session = Session()
        self.context = self._build_context()

        if send is None:
            send = functools.partial(
                send_report,
                endpoint=config.collector_url,
                account_id=config.account_id,
                timeout=config.upload_timeout,
                logger=self.logger,
            )
        self.dispatcher = Dispatcher(
            send,
            max_workers=config.max_workers,
            max_pending=config.max_pending,
            overflow_policy=config.overflow_policy,
            logger=self.logger,
        )
        self.crash_handler: Optional[CrashHandler] = None

    def _build_context(self) -> ReportContext:
        device = self.identity.get_device_metadata()
        return ReportContext(
            application=self.config.app_name,
            instance_id=self.identity.get_instance_id(),
            hw_model=device.model,
            hw_manufacturer=device.manufacturer,
            os_version=device.os_version,
            version=device.app_version,
        )

    # Local logging: echoed immediately, buffered for the next report.

    def d(self, tag: str, message: str, *params: Any) -> None:
        message = _format(message, params)
        self.platform_logger.debug(message, tag=tag)
        self._collect(LogLevel.DEBUG, tag, message)

    def w(self, tag: str, message: str, *params: Any) -> None:
        message = _format(message, params)
        self.platform_logger.warning(message, tag=tag)
        self._collect(LogLevel.WARN, tag, message)

    def e(self, tag: str, message: str, *params: Any, exc: Optional[BaseException] = None) -> None:
        message = _format(message, params)
        if exc is not None:
            self.platform_logger.error(message, tag=tag, exception=describe_exception(exc))
        else:
            self.platform_logger.error(message, tag=tag)
        self._collect(LogLevel.ERROR, tag, message)

    def _collect(self, level: LogLevel, tag: Optional[str], message: str) -> None:
        self.ring.append(LogEntry(level=level, timestamp=int(time.time()), text=_tag_text(tag, message)))

    # Reports

    def trace(self, tag: str, message: str, *extra: Any, **fields: Any) -> None:
        self.platform_logger.debug(message, tag=tag)
        self._report_with_log(ReportCode.TRACE, tag, message, None, extra, fields)

    def warning(self, tag: str, message: str, *extra: Any, **fields: Any) -> None:
        self.platform_logger.warning(message, tag=tag)
        self._report_with_log(ReportCode.WARNING, tag, message, None, extra, fields)

    def error(
        self,
        tag: str,
        message: str,
        exc: Any = None,
        *extra: Any,
        **fields: Any,
    ) -> None:
        """
        Log and report an error, with the stack of ``exc`` when given.

        ``error(tag, message, "key", value)`` is accepted too: a third
        argument that is not an exception starts the extra pairs.
        """
        if exc is not None and not isinstance(exc, BaseException):
            extra = (exc,) + extra
            exc = None
        # Reject bad args before anything is buffered.
        build_fields("component", tag, extra + _flatten(fields))
        self.e(tag, message, exc=exc)
        self._report_with_log(ReportCode.ERROR, tag, message, exc, extra, fields)

    def report_stats(self, stype: str, *extra: Any, **fields: Any) -> None:
        report = self.builder.build_stats("stype", stype, extra + _flatten(fields))
        self.submit(report)

    def report_event(self, event_name: str, *extra: Any, **fields: Any) -> None:
        report = self.builder.build_stats("event_name", event_name, extra + _flatten(fields))
        self.submit(report)

    def report(self, code: int, text: Optional[str], fields: Optional[Dict[str, Any]] = None) -> bool:
        """Send an arbitrary report. Intended for package use."""
        return self.submit(Report(severity=int(code), text=text, fields=dict(fields or {})))

    def _report_with_log(
        self,
        code: ReportCode,
        tag: str,
        message: str,
        exc: Optional[BaseException],
        extra: tuple,
        fields: Dict[str, Any],
    ) -> None:
        report = self.builder.build(
            code,
            tag,
            message,
            error=exc,
            extra_args=extra + _flatten(fields),
            log=self.ring.snapshot(),
        )
        self.submit(report)

    def submit(self, report: Report) -> bool:
        """Encode on the calling thread, upload in the background."""
        try:
            payload = encode_report(report, self.context, self._secret)
        except EncodingFailure as exc:
            self.logger.error("Failed to prepare report", severity=report.severity, error=str(exc))
            return False
        self.logger.debug("Report prepared", severity=report.severity, size=len(payload))
        return self.dispatcher.submit(payload.to_bytes())

    # Sessions

    def start_session(self) -> bool:
        if not self.session.start():
            self.logger.debug("Session is already started, ignoring")
            return False
        self.logger.debug("Starting new session")
        self.report_stats("session_started")
        return True

    def stop_session(self) -> bool:
        duration = self.session.stop()
        if duration is None:
            self.logger.error("stop_session called when no open session is known")
            return False
        self.report_stats("session_finished", "duration", duration)
        self.logger.debug("Session finished, reports scheduled", duration=duration)
        return True

    # Crash handling and lifecycle

    def install_crash_handler(self) -> CrashHandler:
        if self.crash_handler is None:
            self.crash_handler = CrashHandler(
                report=self._report_crash,
                flush=lambda: self.dispatcher.flush(self.config.crash_flush_timeout),
            )
        return self.crash_handler.install()

    def _report_crash(self, exc: BaseException, thread_name: str) -> None:
        self.error(INTERNAL_TAG, "Uncaught", exc, "thread", thread_name)

    def flush(self, timeout: Optional[float] = None) -> bool:
        return self.dispatcher.flush(timeout)

    def close(self, timeout: Optional[float] = None) -> bool:
        if self.crash_handler is not None:
            self.crash_handler.uninstall()
        return self.dispatcher.close(timeout)


def _flatten(fields: Dict[str, Any]) -> tuple:
    flat: list = []
    for key, value in fields.items():
        flat.extend((key, value))
    return tuple(flat)


_client: Optional[Errlog] = None
_client_lock = threading.Lock()


def initialize(config: Optional[ErrlogConfig] = None, **overrides: Any) -> Errlog:
    """
    Initialize the process-wide client and start a session.

    Only the first call configures the client; later calls only start a
    session. Reconfiguring with different credentials is not supported.

    Raises:
        ConfigError: configuration is missing or invalid on the first call,
            or both ``config`` and keyword settings were passed.
    """
    global _client
    if config is not None and overrides:
        raise ConfigError("pass either a config or keyword settings, not both")
    with _client_lock:
        if _client is None:
            if config is None:
                try:
                    config = ErrlogConfig(**overrides)
                except ValidationError as exc:
                    raise ConfigError(str(exc)) from exc
            client = Errlog(config)
            if config.install_crash_handler:
                client.install_crash_handler()
            _client = client
        else:
            requested = config.account_id if config is not None else overrides.get("account_id")
            if requested and requested != _client.config.account_id:
                _client.logger.warning(
                    "Errlog already initialized, ignoring new configuration",
                    account_id=_client.config.account_id,
                )
        client = _client
    client.start_session()
    return client


def get_client() -> Optional[Errlog]:
    return _client


def shutdown(timeout: Optional[float] = None) -> None:
    """Flush pending reports and forget the process-wide client."""
    global _client
    with _client_lock:
        client, _client = _client, None
    if client is not None:
        client.close(timeout)
