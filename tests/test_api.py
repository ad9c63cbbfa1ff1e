from __future__ import annotations

from boxctl import api
from boxctl.core.model import HIDDeviceInfo


class FakeTransport:
    def list_devices(self):
        return [
            HIDDeviceInfo(
                path="/dev/hidraw3",
                vendor_id=0x36E6,
                product_id=0x8001,
                product="PXN CB1",
                manufacturer="PXN",
            )
        ]

    def open(self, path, *, read_size=64, poll_timeout_ms=10):
        raise AssertionError("not used")


def test_public_api_exports_client() -> None:
    assert "Client" in api.__all__
    assert "BoxctlError" in api.__all__
    assert "ControlEvent" in api.__all__


def test_client_wraps_service() -> None:
    client = api.Client(transport=FakeTransport())
    catalogs = client.list_catalogs()
    assert any(catalog.id == "pxn_cb1" for catalog in catalogs)
    assert client.runtime_warnings == ()

    target = client.resolve_target()
    assert target.device.path == "/dev/hidraw3"
    assert target.catalog.id == "pxn_cb1"

    result = client.decode(bytes([1, 0x40, 0, 0, 0, 0]), bytes([1, 0x40, 0, 0, 0x80, 0]))
    assert result.control is not None
    assert result.control.id == "joystick.right"
