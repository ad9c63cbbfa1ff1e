from __future__ import annotations

from pathlib import Path

import pytest


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Path:
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "cfg"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    for name in (
        "BOXCTL_VENDOR_ID",
        "BOXCTL_PRODUCT_ID",
        "BOXCTL_DEVICE_NAME",
        "BOXCTL_POLLING_FREQUENCY",
        "BOXCTL_DEBOUNCE",
        "BOXCTL_LOG_LEVEL",
        "BOXCTL_ENABLE_RAW_DATA",
    ):
        monkeypatch.delenv(name, raising=False)
    return tmp_path
