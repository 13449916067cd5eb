from __future__ import annotations

from typing import Optional

import httpx

from .constants import DEFAULT_COLLECTOR_URL
from .errors import DeliveryFailure
from .logging import ErrlogLogger

UPLOAD_TIMEOUT_SECONDS = 10
REPORT_PATH = "/reports/log"
REPORT_FILENAME = "report.bin"


def report_url(endpoint: str) -> str:
    return f"{endpoint.rstrip('/')}{REPORT_PATH}"


def post_report(
    payload: bytes,
    endpoint: str,
    account_id: str,
    timeout: float = UPLOAD_TIMEOUT_SECONDS,
) -> int:
    """
    POST one payload as multipart/form-data, part ``file``.

    Raises:
        DeliveryFailure: transport error or any status other than 200.
    """
    files = {"file": (REPORT_FILENAME, payload, "application/octet-stream")}
    try:
        with httpx.Client(timeout=timeout) as client:
            response = client.post(
                report_url(endpoint),
                params={"app_id": account_id},
                files=files,
            )
    except httpx.HTTPError as exc:
        raise DeliveryFailure(f"{type(exc).__name__}: {exc}") from exc

    if response.status_code != 200:
        raise DeliveryFailure(f"collector returned HTTP {response.status_code}")
    return response.status_code


def send_report(
    payload: bytes,
    endpoint: str = DEFAULT_COLLECTOR_URL,
    account_id: str = "",
    timeout: float = UPLOAD_TIMEOUT_SECONDS,
    logger: Optional[ErrlogLogger] = None,
) -> bool:
    """
    Upload a report to the collector.

    Best-effort: failures are logged and reported as False. No retries.
    """
    try:
        status = post_report(payload, endpoint, account_id, timeout=timeout)
    except DeliveryFailure as exc:
        if logger:
            logger.warning("Report upload failed", error=str(exc), size=len(payload))
        return False

    if logger:
        logger.debug("Report uploaded", status=status, size=len(payload))
    return True
