from __future__ import annotations

import sys
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import pytest

from errlog.config import ErrlogConfig
from errlog.identity import DeviceMetadata

SECRET_B64 = "czNjcjN0"  # base64("s3cr3t")


class StaticIdentity:
    def __init__(self, instance_id: str = "inst-0001") -> None:
        self.instance_id = instance_id

    def get_instance_id(self) -> str:
        return self.instance_id

    def get_device_metadata(self) -> DeviceMetadata:
        return DeviceMetadata(
            model="x86_64",
            manufacturer="Linux",
            os_version="6.1",
            app_version="1.2.3",
            app_name="MyApp",
        )


class RecordingSend:
    """Stands in for the HTTP upload; records every payload."""

    def __init__(self, result: bool = True) -> None:
        self.result = result
        self.payloads: list[bytes] = []

    def __call__(self, payload: bytes) -> bool:
        self.payloads.append(payload)
        return self.result


@pytest.fixture
def config(tmp_path: Path) -> ErrlogConfig:
    return ErrlogConfig(
        account_id="acct1",
        account_secret=SECRET_B64,
        app_name="MyApp",
        app_version="1.2.3",
        state_dir=tmp_path,
        install_crash_handler=False,
        log_level="debug",
    )


@pytest.fixture
def identity() -> StaticIdentity:
    return StaticIdentity()


@pytest.fixture
def recorder() -> RecordingSend:
    return RecordingSend()
