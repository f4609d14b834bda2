"""Typer CLI entrypoint."""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Any

import typer

from bluezdm.core.config import Settings, load_settings
from bluezdm.core.errors import BluezdmError
from bluezdm.core.manager import DeviceManager

app = typer.Typer(help="Discover BlueZ Bluetooth adapters and devices over D-Bus")


def _settings(ctx: typer.Context) -> Settings:
    return ctx.obj["settings"]


def _build_manager(ctx: typer.Context) -> DeviceManager:
    return DeviceManager.from_settings(_settings(ctx))


@app.callback()
def main(
    ctx: typer.Context,
    config: Path | None = typer.Option(None, "--config", help="Path to a YAML config file"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")
    try:
        ctx.obj = {"settings": load_settings(config)}
    except BluezdmError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("adapters")
def list_adapters(ctx: typer.Context) -> None:
    """Scan for Bluetooth adapters."""
    try:
        with _build_manager(ctx) as manager:
            adapters = manager.scan_for_adapters()
            if not adapters:
                typer.echo("No Bluetooth adapters found")
                return
            for adapter in adapters:
                marker = " (default)" if adapter.address == manager.default_adapter_address else ""
                typer.echo(f"{adapter.name} {adapter.address}{marker}")
    except BluezdmError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("devices")
def list_devices(
    ctx: typer.Context,
    adapter: str | None = typer.Option(None, "--adapter", help="Adapter address or name (e.g. hci0)"),
    timeout: int | None = typer.Option(None, "--timeout", min=0, help="Discovery time in milliseconds"),
    cached: bool = typer.Option(False, "--cached", help="List devices BlueZ already knows without a new scan"),
) -> None:
    """Discover devices through an adapter."""
    settings = _settings(ctx)
    adapter = adapter or settings.default_adapter
    timeout_ms = settings.discovery_timeout_ms if timeout is None else timeout
    try:
        with _build_manager(ctx) as manager:
            if cached:
                target = manager.find_adapter(adapter)
                devices = manager.discovery.collect(target) if target is not None else []
            else:
                devices = manager.scan_for_devices(adapter, timeout_ms)
            if not devices:
                typer.echo("No Bluetooth devices found")
                return
            for device in devices:
                rssi = device.rssi if device.rssi is not None else "-"
                typer.echo(f"{device.address} {device.name or '<unknown-device>'} {rssi} {device.path}")
    except BluezdmError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("monitor")
def monitor(
    ctx: typer.Context,
    seconds: float = typer.Option(30.0, "--seconds", min=0, help="How long to listen"),
) -> None:
    """Print BlueZ property changes as they happen."""

    def _print_change(path: str, interface: str, changed: dict[str, Any], invalidated: list[str]) -> None:
        for name, value in sorted(changed.items()):
            typer.echo(f"{path} {interface}.{name} = {value!r}")
        for name in invalidated:
            typer.echo(f"{path} {interface}.{name} invalidated")

    try:
        with _build_manager(ctx) as manager:
            manager.register_property_handler(_print_change)
            time.sleep(seconds)
    except BluezdmError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


def run() -> None:
    app()


if __name__ == "__main__":
    run()
