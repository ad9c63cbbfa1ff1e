from __future__ import annotations

import asyncio
import sys
import types

import pytest

from boxctl.core.errors import DeviceDiscoveryError, TransportConnectError, TransportReadError
from boxctl.transports.hidapi import HIDAPITransport


class FakeDevice:
    def __init__(self, reads: list[list[int]] | None = None, *, fail_open: bool = False) -> None:
        self.reads = list(reads or [])
        self.fail_open = fail_open
        self.opened_path: bytes | None = None
        self.closed = False
        self.read_args: list[tuple[int, int]] = []

    def open_path(self, path: bytes) -> None:
        if self.fail_open:
            raise OSError("open failed")
        self.opened_path = path

    def read(self, size: int, timeout_ms: int) -> list[int]:
        self.read_args.append((size, timeout_ms))
        if not self.reads:
            return []
        item = self.reads.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    def close(self) -> None:
        self.closed = True


def _install_hid(monkeypatch: pytest.MonkeyPatch, *, entries=None, device: FakeDevice | None = None) -> None:
    def _enumerate():
        if isinstance(entries, Exception):
            raise entries
        return entries or []

    module = types.SimpleNamespace(enumerate=_enumerate, device=lambda: device)
    monkeypatch.setitem(sys.modules, "hid", module)


def test_missing_hidapi_reports_connect_error(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setitem(sys.modules, "hid", None)
    with pytest.raises(TransportConnectError, match="hidapi"):
        HIDAPITransport().list_devices()


def test_list_devices_maps_and_dedupes(monkeypatch: pytest.MonkeyPatch) -> None:
    entry = {
        "path": b"/dev/hidraw3",
        "vendor_id": 0x36E6,
        "product_id": 0x8001,
        "product_string": "PXN CB1",
        "manufacturer_string": "PXN",
        "serial_number": "",
        "interface_number": 0,
    }
    bare = {"path": "/dev/hidraw4", "vendor_id": 1, "product_id": 2}
    _install_hid(monkeypatch, entries=[entry, dict(entry), bare])

    devices = HIDAPITransport().list_devices()

    assert [device.path for device in devices] == ["/dev/hidraw3", "/dev/hidraw4"]
    assert devices[0].product == "PXN CB1"
    assert devices[0].interface == 0
    assert devices[1].product == "Unknown"
    assert devices[1].interface == -1


def test_enumeration_failure(monkeypatch: pytest.MonkeyPatch) -> None:
    _install_hid(monkeypatch, entries=OSError("permission denied"))
    with pytest.raises(DeviceDiscoveryError, match="permission denied"):
        HIDAPITransport().list_devices()


def test_open_failure(monkeypatch: pytest.MonkeyPatch) -> None:
    _install_hid(monkeypatch, device=FakeDevice(fail_open=True))
    with pytest.raises(TransportConnectError, match="/dev/hidraw3"):
        HIDAPITransport().open("/dev/hidraw3")


def test_reports_skip_empty_reads_and_release_on_close(monkeypatch: pytest.MonkeyPatch) -> None:
    device = FakeDevice([[1, 64, 0, 0, 0, 0], [], [1, 65, 0, 0, 0, 0]])
    _install_hid(monkeypatch, device=device)
    source = HIDAPITransport().open("/dev/hidraw3", poll_timeout_ms=5)
    received: list[bytes] = []

    async def scenario() -> None:
        async for report in source.reports():
            received.append(report)
            if len(received) == 2:
                source.close()

    asyncio.run(scenario())
    assert device.opened_path == b"/dev/hidraw3"
    assert received == [bytes([1, 64, 0, 0, 0, 0]), bytes([1, 65, 0, 0, 0, 0])]
    assert device.read_args[0] == (64, 5)
    assert device.closed


def test_read_error_is_wrapped(monkeypatch: pytest.MonkeyPatch) -> None:
    device = FakeDevice([OSError("read error")])
    _install_hid(monkeypatch, device=device)
    source = HIDAPITransport().open("/dev/hidraw3")

    async def scenario() -> None:
        async for _ in source.reports():
            pass

    with pytest.raises(TransportReadError, match="read error"):
        asyncio.run(scenario())
    source.close()
    assert device.closed
