from __future__ import annotations

import json
import platform
import secrets
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol

from .constants import Limits
from .logging import ErrlogLogger

_BASE32_DIGITS = "0123456789abcdefghijklmnopqrstuv"
IDENTITY_FILE = "identity.json"


def random_id(length: int = Limits.INSTANCE_ID_LENGTH) -> str:
    """Cryptographically random base-32 token of exactly ``length`` characters."""
    return "".join(secrets.choice(_BASE32_DIGITS) for _ in range(length))


@dataclass(frozen=True)
class DeviceMetadata:
    """Host and application description sent with every report."""

    model: str
    manufacturer: str
    os_version: str
    app_version: str
    app_name: str

    @classmethod
    def from_platform(cls, app_name: str, app_version: str = "") -> "DeviceMetadata":
        """Describe the running host."""
        return cls(
            model=platform.machine() or "unknown",
            manufacturer=platform.system() or "unknown",
            os_version=platform.release() or "",
            app_version=app_version,
            app_name=app_name,
        )


class IdentitySource(Protocol):
    def get_instance_id(self) -> str: ...

    def get_device_metadata(self) -> DeviceMetadata: ...


class FileIdentitySource:
    """
    Instance id persisted as JSON under ``state_dir``.

    The id is generated once per install and cached for the process lifetime.
    An unreadable or corrupted file is replaced by a fresh id.
    """

    def __init__(
        self,
        state_dir: Path,
        app_name: str,
        app_version: str = "",
        logger: Optional[ErrlogLogger] = None,
    ) -> None:
        self.path = Path(state_dir) / IDENTITY_FILE
        self.app_name = app_name
        self.app_version = app_version
        self.logger = logger
        self._instance_id: Optional[str] = None
        self._lock = threading.Lock()

    def get_instance_id(self) -> str:
        with self._lock:
            if self._instance_id is None:
                self._instance_id = self._load() or self._create()
            return self._instance_id

    def get_device_metadata(self) -> DeviceMetadata:
        return DeviceMetadata.from_platform(self.app_name, self.app_version)

    def _load(self) -> Optional[str]:
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None
        except (OSError, json.JSONDecodeError) as exc:
            if self.logger:
                self.logger.warning("Identity file unreadable", path=str(self.path), error=str(exc))
            return None

        instance_id = data.get("instance_id") if isinstance(data, dict) else None
        if not isinstance(instance_id, str) or not instance_id:
            return None
        if self.logger:
            self.logger.info("Known instance", instance_id=instance_id)
        return instance_id

    def _create(self) -> str:
        instance_id = random_id()
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps({"instance_id": instance_id}), encoding="utf-8")
        except OSError as exc:
            # Still usable for this process, just not stable across restarts.
            if self.logger:
                self.logger.warning("Cannot persist instance id", path=str(self.path), error=str(exc))
        else:
            if self.logger:
                self.logger.info("Created new instance id", instance_id=instance_id)
        return instance_id
