from __future__ import annotations

import gzip
import hashlib
import hmac
import json
import zlib
from typing import Any, Dict

from .constants import DIGEST_SIZE, FORMAT_TAG
from .errors import EncodingFailure, PayloadIntegrityError
from .models import EncodedPayload, Report, ReportContext


def merge_fields(report: Report, context: ReportContext) -> Dict[str, Any]:
    """Report fields first, then process metadata. Metadata keys always win."""
    data = report.to_fields()
    data.update(context.as_fields())
    return data


def serialize(data: Dict[str, Any]) -> bytes:
    try:
        text = json.dumps(
            data,
            ensure_ascii=False,
            allow_nan=False,
            sort_keys=True,
            separators=(",", ":"),
        )
        # Lone surrogates fail here with UnicodeEncodeError, a ValueError.
        return text.encode("utf-8")
    except (TypeError, ValueError) as exc:
        raise EncodingFailure(f"report is not JSON serializable: {exc}") from exc


def compress(raw: bytes) -> bytes:
    try:
        # mtime=0 keeps output stable for identical input
        return gzip.compress(raw, mtime=0)
    except (OSError, zlib.error) as exc:
        raise EncodingFailure(f"compression failed: {exc}") from exc


def compute_digest(body: bytes, secret: bytes) -> bytes:
    return hashlib.sha256(body + secret).digest()


def encode_report(report: Report, context: ReportContext, secret: bytes) -> EncodedPayload:
    """
    Encode a report for upload.

    Frame: 1 byte format tag + gzip(JSON) + sha256(gzip bytes + secret).
    The digest is a shared-secret integrity tag, not a signature.

    Raises:
        EncodingFailure: serialization or compression failed.
    """
    body = compress(serialize(merge_fields(report, context)))
    return EncodedPayload(body=body, digest=compute_digest(body, secret), format_tag=FORMAT_TAG)


def decode_payload(data: bytes, secret: bytes) -> Dict[str, Any]:
    """
    Verify and unpack a framed payload.

    Raises:
        PayloadIntegrityError: unknown format tag, short frame, digest mismatch
            or unreadable body.
    """
    if len(data) < 1 + DIGEST_SIZE + 1:
        raise PayloadIntegrityError("payload is too short")
    if data[0] != FORMAT_TAG:
        raise PayloadIntegrityError(f"unknown format tag: {data[0]}")

    body = data[1:-DIGEST_SIZE]
    digest = data[-DIGEST_SIZE:]
    if not hmac.compare_digest(digest, compute_digest(body, secret)):
        raise PayloadIntegrityError("digest mismatch (tampering or wrong secret)")

    try:
        parsed = json.loads(gzip.decompress(body).decode("utf-8"))
    except (OSError, EOFError, zlib.error, UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise PayloadIntegrityError(f"payload body is unreadable: {exc}") from exc
    if not isinstance(parsed, dict):
        raise PayloadIntegrityError("payload body must be a JSON object")
    return parsed
