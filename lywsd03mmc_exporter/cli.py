"""Typer CLI entrypoint."""

from __future__ import annotations

import logging
from pathlib import Path

import typer

from lywsd03mmc_exporter.core.address import compact_mac
from lywsd03mmc_exporter.core.config import load_config
from lywsd03mmc_exporter.core.errors import ExporterError, UnknownFormatError
from lywsd03mmc_exporter.core.keys import KeyStore, load_keys
from lywsd03mmc_exporter.core.liveness import LivenessTracker
from lywsd03mmc_exporter.core.metrics import NAMESPACE, MetricsSink
from lywsd03mmc_exporter.core.model import ExporterConfig
from lywsd03mmc_exporter.core.service import (
    ENVIRONMENTAL_SENSING_UUID,
    XIAOMI_UUID,
    ExporterService,
)
from lywsd03mmc_exporter.transports.ble_scan import BleakScanTransport

app = typer.Typer(help="Prometheus exporter for LYWSD03MMC BLE thermometers")
LOGGER = logging.getLogger(__name__)

SERVICES = {
    "environmental": ENVIRONMENTAL_SENSING_UUID,
    "xiaomi": XIAOMI_UUID,
}


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _load_keystore(path: Path | None) -> KeyStore:
    if path is None:
        return KeyStore()
    loaded = load_keys(path)
    for warning in loaded.warnings:
        LOGGER.warning(warning)
    return loaded.store


def _merge(config: ExporterConfig, *, keys: Path | None, listen: str | None, device: int | None) -> ExporterConfig:
    return ExporterConfig(
        listen=listen if listen is not None else config.listen,
        device=device if device is not None else config.device,
        keys=keys if keys is not None else config.keys,
        vendor_prefix=config.vendor_prefix,
        sweep_interval=config.sweep_interval,
    )


@app.command("serve")
def serve(
    keys: Path | None = typer.Option(None, "--keys", "-k", help="Load keys from file"),
    listen: str | None = typer.Option(None, "--listen", "-l", help="Listen on addr (default :9265)"),
    device: int | None = typer.Option(None, "--device", "-i", help="Use device hciN"),
    config: Path | None = typer.Option(None, "--config", help="YAML config file"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log every decoded metric"),
) -> None:
    """Scan for thermometers and export their readings."""
    _setup_logging(verbose)
    try:
        settings = _merge(load_config(config), keys=keys, listen=listen, device=device)
        sink = MetricsSink()
        tracker = LivenessTracker(sink.withdraw)
        service = ExporterService(
            keys=_load_keystore(settings.keys),
            sink=sink,
            tracker=tracker,
        )
        transport = BleakScanTransport(
            device=settings.device,
            vendor_prefix=settings.vendor_prefix,
        )
        sink.serve(settings.listen)
        tracker.start(settings.sweep_interval)
        try:
            transport.scan(service.handle)
        finally:
            tracker.stop()
    except (ExporterError, ValueError) as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None
    except KeyboardInterrupt:
        typer.echo("Interrupted", err=True)


@app.command("decode")
def decode(
    payload: str = typer.Argument(..., help="Service data as hex"),
    mac: str = typer.Option(..., "--mac", help="Advertiser MAC address"),
    service: str = typer.Option("environmental", "--service", help="environmental or xiaomi"),
    keys: Path | None = typer.Option(None, "--keys", "-k", help="Load keys from file"),
) -> None:
    """Decode a single service-data payload and print its metrics."""
    try:
        uuid = SERVICES.get(service.lower())
        if uuid is None:
            allowed = ", ".join(sorted(SERVICES))
            raise UnknownFormatError(f"Unknown service '{service}'. Allowed: {allowed}")
        try:
            data = bytes.fromhex(payload.replace(" ", "").replace(":", ""))
        except ValueError:
            raise UnknownFormatError(f"Payload '{payload}' is not valid hex") from None

        exporter = ExporterService(keys=_load_keystore(keys))
        reading = exporter.routes[uuid].decode(data, compact_mac(mac))
        for name, value in reading.metrics():
            typer.echo(f"{reading.mac} {NAMESPACE}_{name} {value:g}")
    except ExporterError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("keys")
def check_keys(path: Path = typer.Argument(..., help="Key file to validate")) -> None:
    """Validate a key file and list the devices it covers."""
    try:
        loaded = load_keys(path)
    except ExporterError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None

    for warning in loaded.warnings:
        typer.echo(f"Warning: {warning}", err=True)
    if not len(loaded.store):
        typer.echo("No keys loaded")
        raise typer.Exit(code=1)
    for mac in sorted(loaded.store.keys):
        typer.echo(mac)


def run() -> None:
    app()


if __name__ == "__main__":
    run()
