"""Public API: catalog listing, HID target resolution, offline decode and the monitor loop."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from pathlib import Path

from boxctl.core.actions import (
    ActionContext,
    ActionResult,
    ActionSpec,
    ButtonAction,
    LogAction,
    MacroAction,
    ShellAction,
    parse_action_spec,
)
from boxctl.core.config import AppConfig
from boxctl.core.errors import (
    ActionError,
    ActionParseError,
    BoxctlError,
    CatalogLoadError,
    CatalogResolutionError,
    CatalogValidationError,
    ConfigLoadError,
    ConfigValidationError,
    DeviceDiscoveryError,
    DeviceSelectionError,
    StreamStateError,
    TransportConnectError,
    TransportError,
    TransportReadError,
)
from boxctl.core.model import (
    ByteDelta,
    ChangeSignature,
    ControlCatalog,
    ControlDescriptor,
    ControlEvent,
    ControlKind,
    DecodeResult,
    HIDDeviceInfo,
    ResolvedTarget,
    ToggleState,
    UnmatchedChange,
)
from boxctl.core.service import BoxService
from boxctl.transports.base import HIDTransport, ReportSource

__all__ = [
    "BoxctlError",
    "ActionError",
    "ActionParseError",
    "CatalogLoadError",
    "CatalogResolutionError",
    "CatalogValidationError",
    "ConfigLoadError",
    "ConfigValidationError",
    "DeviceDiscoveryError",
    "DeviceSelectionError",
    "StreamStateError",
    "TransportError",
    "TransportConnectError",
    "TransportReadError",
    "ActionContext",
    "ActionResult",
    "ActionSpec",
    "ButtonAction",
    "LogAction",
    "MacroAction",
    "ShellAction",
    "parse_action_spec",
    "AppConfig",
    "ByteDelta",
    "ChangeSignature",
    "ControlCatalog",
    "ControlDescriptor",
    "ControlEvent",
    "ControlKind",
    "DecodeResult",
    "HIDDeviceInfo",
    "ResolvedTarget",
    "ToggleState",
    "UnmatchedChange",
    "HIDTransport",
    "ReportSource",
    "Client",
]


class Client:
    """Public client for boxctl core capabilities.

    A `Client` wraps catalog loading, HID discovery and matching, offline
    decoding and the monitor loop behind a stable API.
    """

    def __init__(
        self,
        *,
        transport: HIDTransport | None = None,
        config: AppConfig | None = None,
        config_path: Path | None = None,
    ) -> None:
        self._service = BoxService(transport=transport, config=config, config_path=config_path)

    @property
    def load_warnings(self) -> tuple[str, ...]:
        return self._service.load_warnings

    @property
    def runtime_warnings(self) -> tuple[str, ...]:
        return self._service.runtime_warnings

    @property
    def config(self) -> AppConfig:
        return self._service.config

    def list_catalogs(self) -> list[ControlCatalog]:
        return self._service.list_catalogs()

    def list_devices(self) -> list[HIDDeviceInfo]:
        return self._service.list_devices()

    def resolve_target(
        self,
        *,
        catalog_id: str | None = None,
        device_hint: str | None = None,
    ) -> ResolvedTarget:
        return self._service.resolve_target(catalog_id=catalog_id, device_hint=device_hint)

    def decode(
        self,
        baseline: bytes,
        report: bytes,
        *,
        catalog_id: str | None = None,
    ) -> DecodeResult:
        return self._service.decode(baseline, report, catalog_id=catalog_id)

    def rename_control(
        self,
        control_id: str,
        name: str,
        *,
        catalog_id: str | None = None,
    ) -> Path:
        return self._service.rename_control(control_id, name, catalog_id=catalog_id)

    async def monitor(
        self,
        *,
        catalog_id: str | None = None,
        device_hint: str | None = None,
        stop_event: asyncio.Event | None = None,
        on_event: Callable[[ControlEvent], object] | None = None,
        on_unmatched: Callable[[UnmatchedChange], object] | None = None,
    ) -> None:
        await self._service.monitor(
            catalog_id=catalog_id,
            device_hint=device_hint,
            stop_event=stop_event,
            on_event=on_event,
            on_unmatched=on_unmatched,
        )
