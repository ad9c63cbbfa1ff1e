"""Service layer used by CLI and the public API."""

from __future__ import annotations

import asyncio
import importlib.util
import logging
from collections.abc import Callable
from pathlib import Path

from boxctl.core.actions import ActionDispatcher
from boxctl.core.catalog_loader import load_catalogs, set_user_name
from boxctl.core.changes import detect
from boxctl.core.config import AppConfig, load_config
from boxctl.core.device_match import best_catalog_for_device
from boxctl.core.errors import CatalogResolutionError, DeviceSelectionError, TransportError
from boxctl.core.model import (
    ChangeSignature,
    ControlCatalog,
    ControlEvent,
    DecodeResult,
    HIDDeviceInfo,
    ResolvedTarget,
    UnmatchedChange,
)
from boxctl.core.resolver import ControlResolver
from boxctl.core.stream import DeviceStream, StreamState, TriggerCallback
from boxctl.transports.base import HIDTransport, ReportSource
from boxctl.transports.hidapi import HIDAPITransport

LOGGER = logging.getLogger(__name__)


class BoxService:
    def __init__(
        self,
        *,
        transport: HIDTransport | None = None,
        config: AppConfig | None = None,
        config_path: Path | None = None,
    ) -> None:
        self._loaded = load_catalogs()
        self.catalogs = self._loaded.catalogs
        self.load_warnings = self._loaded.warnings
        self.runtime_warnings = _runtime_warnings() if transport is None else ()
        self.config = config or load_config(config_path)
        self.transport = transport or HIDAPITransport()

    def list_catalogs(self) -> list[ControlCatalog]:
        return sorted(self.catalogs.values(), key=lambda c: c.id)

    def list_devices(self) -> list[HIDDeviceInfo]:
        return self.transport.list_devices()

    def get_catalog(self, catalog_id: str | None = None) -> ControlCatalog:
        catalog_id = catalog_id or self.config.catalog
        if catalog_id:
            catalog = self.catalogs.get(catalog_id)
            if catalog is None:
                available = ", ".join(sorted(self.catalogs))
                raise CatalogResolutionError(f"Unknown catalog '{catalog_id}'. Available: {available}")
            return catalog
        if len(self.catalogs) == 1:
            return next(iter(self.catalogs.values()))
        if not self.catalogs:
            raise CatalogResolutionError("No catalogs loaded")
        raise CatalogResolutionError(
            "Multiple catalogs loaded. Use --catalog to choose one: " + ", ".join(sorted(self.catalogs))
        )

    def _configured_device(self, device: HIDDeviceInfo) -> bool:
        wanted = self.config.device
        if wanted.vendor_id is None or wanted.product_id is None:
            return False
        return device.vendor_id == wanted.vendor_id and device.product_id == wanted.product_id

    def resolve_target(
        self,
        catalog_id: str | None = None,
        device_hint: str | None = None,
    ) -> ResolvedTarget:
        devices = self.list_devices()

        if not devices:
            raise DeviceSelectionError("No HID devices found. Ensure your button box is connected.")

        catalog_override: ControlCatalog | None = None
        if catalog_id or self.config.catalog:
            catalog_override = self.get_catalog(catalog_id)

        candidates: list[ResolvedTarget] = []
        for device in devices:
            if catalog_override:
                catalog = catalog_override
                matched = best_catalog_for_device(device, {catalog.id: catalog}) is not None
                if not matched and not self._configured_device(device):
                    continue
            else:
                catalog = best_catalog_for_device(device, self.catalogs)
                if catalog is None:
                    continue
            candidates.append(ResolvedTarget(device=device, catalog=catalog))

        if device_hint:
            hint = device_hint.lower()
            hinted = [
                c
                for c in candidates
                if c.device.path.lower() == hint
                or hint in c.device.path.lower()
                or hint in c.device.product.lower()
                or hint in c.device.manufacturer.lower()
                or hint == f"{c.device.vendor_id:04x}:{c.device.product_id:04x}"
                or hint in c.catalog.id.lower()
                or hint in c.catalog.name.lower()
            ]
            if not hinted:
                raise DeviceSelectionError(f"No device found matching '{device_hint}'")
            candidates = hinted

        if not candidates:
            if catalog_override:
                raise DeviceSelectionError(
                    f"No connected device matched catalog '{catalog_override.id}'."
                )
            raise DeviceSelectionError(
                "No connected device matched any catalog. Use --catalog to target explicitly or add a catalog."
            )

        if len(candidates) > 1:
            candidate_desc = ", ".join(f"{c.device.path} ({c.device.product})" for c in candidates)
            raise DeviceSelectionError(
                f"Multiple candidate devices found: {candidate_desc}. Use --device to choose one."
            )

        return candidates[0]

    def decode(
        self,
        baseline: bytes,
        report: bytes,
        catalog_id: str | None = None,
    ) -> DecodeResult:
        """Decode a single report against a baseline without touching any stream."""
        catalog = self.get_catalog(catalog_id)
        deltas = tuple(detect(baseline, report))
        signature = ChangeSignature.from_deltas(deltas)
        return DecodeResult(
            deltas=deltas,
            signature=signature,
            control=ControlResolver(catalog).resolve(signature),
        )

    def rename_control(
        self,
        control_id: str,
        name: str,
        catalog_id: str | None = None,
    ) -> Path:
        catalog = self.get_catalog(catalog_id)
        path = set_user_name(catalog.id, control_id, name, loaded=self._loaded)
        self._loaded = load_catalogs()
        self.catalogs = self._loaded.catalogs
        return path

    def build_stream(
        self,
        target: ResolvedTarget,
        *,
        on_trigger: TriggerCallback,
        on_unmatched: Callable[[UnmatchedChange], object] | None = None,
    ) -> DeviceStream:
        return DeviceStream(
            ControlResolver(target.catalog),
            device_id=f"{target.catalog.id}@{target.device.path}",
            report_length=target.catalog.report_length,
            debounce_s=self.config.polling.debounce_ms / 1000.0,
            on_trigger=on_trigger,
            on_unmatched=on_unmatched,
            include_raw_data=self.config.logging.enable_raw_data,
        )

    async def monitor(
        self,
        catalog_id: str | None = None,
        device_hint: str | None = None,
        *,
        stop_event: asyncio.Event | None = None,
        on_event: Callable[[ControlEvent], object] | None = None,
        on_unmatched: Callable[[UnmatchedChange], object] | None = None,
    ) -> None:
        """Stream reports from the resolved device and dispatch actions.

        Returns when ``stop_event`` is set. Transport errors close the stream
        and propagate; there is no reconnect.
        """
        target = self.resolve_target(catalog_id=catalog_id, device_hint=device_hint)
        dispatcher = ActionDispatcher(
            self.config.actions,
            include_raw_data=self.config.logging.enable_raw_data,
        )

        async def _trigger(event: ControlEvent) -> None:
            LOGGER.info("Button %d (%s) pressed", event.button_index, event.control_name)
            if on_event is not None:
                on_event(event)
            await dispatcher.dispatch(event)

        def _unmatched(change: UnmatchedChange) -> None:
            LOGGER.info("Unmatched change [%s] raw=%s", ", ".join(change.tokens), change.raw_data.hex())
            if on_unmatched is not None:
                on_unmatched(change)

        stream = self.build_stream(target, on_trigger=_trigger, on_unmatched=_unmatched)
        LOGGER.info("Connecting to %s via catalog %s", target.device.product, target.catalog.id)
        source = self.transport.open(
            target.device.path,
            poll_timeout_ms=self.config.polling.frequency_ms,
        )
        stream.connect()

        watcher: asyncio.Task[None] | None = None
        if stop_event is not None:
            watcher = asyncio.create_task(_close_when_set(stop_event, source))

        try:
            async for report in source.reports():
                stream.feed(report)
        except TransportError as exc:
            stream.fail(exc)
            raise
        finally:
            if watcher is not None:
                watcher.cancel()
            source.close()
            if stream.state is not StreamState.DISCONNECTED:
                stream.close()
            await stream.drain()
            LOGGER.info("Disconnected from %s", target.device.path)


async def _close_when_set(stop_event: asyncio.Event, source: ReportSource) -> None:
    await stop_event.wait()
    source.close()


def _runtime_warnings() -> tuple[str, ...]:
    warnings: list[str] = []
    if importlib.util.find_spec("hid") is None:
        warnings.append("Python runtime missing the 'hid' module (hidapi); device commands will fail.")
    return tuple(warnings)
