from __future__ import annotations

import base64
import binascii
from pathlib import Path
from typing import Literal, Optional

from pydantic import Field, SecretStr, confloat, conint, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .constants import DEFAULT_COLLECTOR_URL, Limits

OverflowPolicy = Literal["drop_new", "drop_oldest"]
LogLevelName = Literal["debug", "info", "warning", "error"]


def _compact(secret: str) -> str:
    """Secrets may arrive with line breaks or padding spaces."""
    return "".join(secret.split())


class ErrlogConfig(BaseSettings):
    """Client configuration, loaded from keyword arguments or ERRLOG_* variables."""

    model_config = SettingsConfigDict(
        env_prefix="ERRLOG_",
        frozen=True,
        extra="ignore",
    )

    # Required account credentials
    account_id: str = Field(description="Account identifier issued by the collector")
    account_secret: SecretStr = Field(description="Base64-encoded shared secret used for the payload digest")
    app_name: str = Field(description="Application name reported with every payload")
    app_version: str = Field(default="", description="Application version string")

    # Transport
    collector_url: str = Field(default=DEFAULT_COLLECTOR_URL)
    upload_timeout: conint(ge=1) = Field(default=10, description="HTTP timeout in seconds")

    # Buffering and dispatch
    log_capacity: conint(ge=1) = Field(default=Limits.LOG_CAPACITY)
    max_workers: conint(ge=1) = Field(default=2)
    max_pending: conint(ge=1) = Field(default=64)
    overflow_policy: OverflowPolicy = Field(
        default="drop_new",
        description="What to drop when max_pending payloads are queued: drop_new or drop_oldest",
    )

    # Crash handling
    install_crash_handler: bool = Field(default=True)
    crash_flush_timeout: confloat(ge=0) = Field(
        default=2.0,
        description="Seconds to wait for the crash report upload before the previous handler runs",
    )

    state_dir: Optional[Path] = Field(default=None, description="Where the instance id is persisted")
    log_level: LogLevelName = Field(default="info")

    @field_validator("account_id", "app_name")
    @classmethod
    def _require_non_empty(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be empty")
        return value

    @field_validator("account_secret")
    @classmethod
    def _validate_secret(cls, value: SecretStr) -> SecretStr:
        raw = _compact(value.get_secret_value())
        if not raw:
            raise ValueError("account_secret must not be empty")
        try:
            base64.b64decode(raw, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise ValueError(f"account_secret is not valid base64: {exc}") from exc
        return value

    @field_validator("overflow_policy", "log_level", mode="before")
    @classmethod
    def _normalize_lowercase(cls, value: str) -> str:
        if isinstance(value, str):
            return value.strip().lower()
        return value

    def secret_bytes(self) -> bytes:
        return base64.b64decode(_compact(self.account_secret.get_secret_value()), validate=True)

    def resolved_state_dir(self) -> Path:
        return self.state_dir or Path.home() / ".errlog"
