"""Typer CLI entrypoint."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import signal
from pathlib import Path

import typer

from boxctl.core.actions import describe_action
from boxctl.core.device_match import best_catalog_for_device
from boxctl.core.errors import BoxctlError
from boxctl.core.model import ControlEvent, UnmatchedChange
from boxctl.core.service import BoxService

app = typer.Typer(help="USB HID button box decoder with catalog-driven actions")

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _build_service(config_path: Path | None = None) -> BoxService:
    service = BoxService(config_path=config_path)
    config = getattr(service, "config", None)
    if config is not None:
        logging.basicConfig(level=config.logging.level_number, format=LOG_FORMAT)
    for warning in getattr(service, "load_warnings", ()):
        typer.echo(f"Warning: {warning}", err=True)
    for warning in getattr(service, "runtime_warnings", ()):
        typer.echo(f"Warning: {warning}", err=True)
    return service


def _parse_hex(value: str, name: str) -> bytes:
    cleaned = value.replace(" ", "").replace(":", "")
    try:
        return bytes.fromhex(cleaned)
    except ValueError:
        raise typer.BadParameter(f"{name} must be a hex string, got '{value}'") from None


@app.command("catalogs")
def list_catalogs() -> None:
    """List available catalogs and their controls."""
    try:
        service = _build_service()
        catalogs = service.list_catalogs()
        if not catalogs:
            typer.echo("No catalogs loaded")
            raise typer.Exit(code=1)

        for catalog in catalogs:
            typer.echo(f"{catalog.id}: {catalog.name} (report length {catalog.report_length})")
            for control in catalog.controls:
                typer.echo(
                    f"  [{control.button_index}] {control.kind.value} {control.id}: "
                    f"{control.display_name} ({control.signature})"
                )
    except BoxctlError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("devices")
def list_devices() -> None:
    """List attached HID devices and the matched catalog."""
    try:
        service = _build_service()
        devices = service.list_devices()
        if not devices:
            typer.echo("No HID devices found")
            return

        for device in devices:
            catalog = best_catalog_for_device(device, service.catalogs)
            matched = catalog.id if catalog else "<no-match>"
            typer.echo(
                f"{device.path} {device.vendor_id:04x}:{device.product_id:04x} "
                f"{device.product} -> {matched}"
            )
    except BoxctlError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("decode")
def decode(
    baseline: str = typer.Argument(..., help="Previous report as hex"),
    report: str = typer.Argument(..., help="Current report as hex"),
    catalog: str | None = typer.Option(None, "--catalog", help="Catalog ID"),
) -> None:
    """Decode one report against a baseline without opening a device."""
    previous = _parse_hex(baseline, "BASELINE")
    current = _parse_hex(report, "REPORT")
    try:
        service = _build_service()
        result = service.decode(previous, current, catalog_id=catalog)
        if not result.signature:
            typer.echo("No changes")
            return
        typer.echo(f"Changes: {result.signature}")
        if result.control is None:
            typer.echo("No control matched")
            return
        control = result.control
        typer.echo(f"Control: {control.id} ({control.display_name}) slot {control.button_index}")
    except BoxctlError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("rename")
def rename(
    control_id: str,
    name: str = typer.Argument(..., help="New name; empty string clears it"),
    catalog: str | None = typer.Option(None, "--catalog", help="Catalog ID"),
) -> None:
    """Persist a user-facing name for a catalog control."""
    try:
        service = _build_service()
        path = service.rename_control(control_id, name, catalog_id=catalog)
        if name:
            typer.echo(f"Renamed {control_id} to '{name}' ({path})")
        else:
            typer.echo(f"Cleared name for {control_id} ({path})")
    except BoxctlError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("monitor")
def monitor(
    device: str | None = typer.Option(None, "--device", help="Path, vid:pid or partial name"),
    catalog: str | None = typer.Option(None, "--catalog", help="Catalog ID"),
    config: Path | None = typer.Option(None, "--config", help="Config file path"),
    show_unmatched: bool = typer.Option(True, "--unmatched/--no-unmatched", help="Print unmatched changes"),
) -> None:
    """Decode reports from the button box and run mapped actions until Ctrl+C."""

    def _print_event(event: ControlEvent) -> None:
        line = f"[{event.button_index}] {event.control_name}"
        if event.toggle_position is not None:
            line += f" ({event.toggle_position.name.lower()})"
        typer.echo(line)

    def _print_unmatched(change: UnmatchedChange) -> None:
        typer.echo(f"Unmatched: {', '.join(change.tokens)}")

    try:
        service = _build_service(config)
        for index, mapping in sorted(service.config.actions.items()):
            typer.echo(f"  {index}: {mapping.name} -> {describe_action(mapping.action)}")
        asyncio.run(
            _monitor(
                service,
                catalog_id=catalog,
                device_hint=device,
                on_event=_print_event,
                on_unmatched=_print_unmatched if show_unmatched else None,
            )
        )
    except KeyboardInterrupt:
        typer.echo("Stopped")
    except BoxctlError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


async def _monitor(service: BoxService, **kwargs) -> None:
    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    with contextlib.suppress(NotImplementedError):
        loop.add_signal_handler(signal.SIGINT, stop_event.set)
        loop.add_signal_handler(signal.SIGTERM, stop_event.set)
    await service.monitor(stop_event=stop_event, **kwargs)


def run() -> None:
    app()


if __name__ == "__main__":
    run()
