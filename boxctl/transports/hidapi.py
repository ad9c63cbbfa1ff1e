"""HID transport implementation using the hidapi bindings."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from typing import Any

from boxctl.core.errors import (
    DeviceDiscoveryError,
    TransportConnectError,
    TransportReadError,
)
from boxctl.core.model import HIDDeviceInfo, Report

LOGGER = logging.getLogger(__name__)


def _import_hid() -> Any:
    try:
        import hid  # type: ignore
    except Exception as exc:
        raise TransportConnectError(
            "HID transport requires 'hidapi'. Install dependency and retry."
        ) from exc
    return hid


def _path_str(path: bytes | str) -> str:
    return path.decode() if isinstance(path, bytes) else path


class HIDAPIReportSource:
    def __init__(self, device: Any, *, path: str, read_size: int, poll_timeout_ms: int) -> None:
        self._device = device
        self.path = path
        self._read_size = read_size
        self._poll_timeout_ms = poll_timeout_ms
        self._closed = False
        self._reading = False
        self._released = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def reports(self) -> AsyncIterator[Report]:
        self._reading = True
        try:
            while not self._closed:
                try:
                    data = await asyncio.to_thread(
                        self._device.read, self._read_size, self._poll_timeout_ms
                    )
                except (OSError, ValueError) as exc:
                    raise TransportReadError(f"HID read failed on {self.path}: {exc}") from exc
                if data:
                    yield bytes(data)
        finally:
            self._reading = False
            if self._closed:
                self._release()

    def close(self) -> None:
        self._closed = True
        # A blocked read owns the handle until its poll timeout elapses.
        if not self._reading:
            self._release()

    def _release(self) -> None:
        if self._released:
            return
        self._released = True
        self._device.close()
        LOGGER.info("Closed HID device %s", self.path)


class HIDAPITransport:
    def list_devices(self) -> list[HIDDeviceInfo]:
        hid = _import_hid()
        try:
            entries = hid.enumerate()
        except (OSError, ValueError) as exc:
            raise DeviceDiscoveryError(f"HID enumeration failed: {exc}") from exc

        seen: set[str] = set()
        devices: list[HIDDeviceInfo] = []
        for item in entries:
            path = _path_str(item["path"])
            if path in seen:
                continue
            seen.add(path)
            devices.append(
                HIDDeviceInfo(
                    path=path,
                    vendor_id=item["vendor_id"],
                    product_id=item["product_id"],
                    product=item.get("product_string") or "Unknown",
                    manufacturer=item.get("manufacturer_string") or "Unknown",
                    serial=item.get("serial_number") or "",
                    interface=item.get("interface_number", -1),
                )
            )
        return devices

    def open(
        self,
        path: str,
        *,
        read_size: int = 64,
        poll_timeout_ms: int = 10,
    ) -> HIDAPIReportSource:
        hid = _import_hid()
        device = hid.device()
        try:
            device.open_path(path.encode())
        except OSError as exc:
            raise TransportConnectError(f"Could not open HID device {path}: {exc}") from exc
        LOGGER.info("Opened HID device %s", path)
        return HIDAPIReportSource(
            device,
            path=path,
            read_size=read_size,
            poll_timeout_ms=poll_timeout_ms,
        )
