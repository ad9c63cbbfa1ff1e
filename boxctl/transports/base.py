"""Transport interfaces."""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Protocol

from boxctl.core.model import HIDDeviceInfo, Report


class ReportSource(Protocol):
    def reports(self) -> AsyncIterator[Report]:
        """Yield raw input reports until closed; raise TransportReadError on failure."""

    def close(self) -> None:
        """Stop reading and release the device."""


class HIDTransport(Protocol):
    def list_devices(self) -> list[HIDDeviceInfo]:
        """Enumerate HID interfaces currently attached."""

    def open(
        self,
        path: str,
        *,
        read_size: int = 64,
        poll_timeout_ms: int = 10,
    ) -> ReportSource:
        """Open a device by path and return its report source."""
