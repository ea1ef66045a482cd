"""Core data models shared by decoders, service, and CLI."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path

SENSOR = "LYWSD03MMC"


@dataclass(frozen=True)
class SensorReading:
    mac: str
    temperature: float | None = None
    humidity: float | None = None
    battery_percent: float | None = None
    battery_volts: float | None = None
    frame: int | None = None

    def metrics(self) -> Iterator[tuple[str, float]]:
        """Yield ``(metric_name, value)`` for every populated field."""
        fields = (
            ("temperature_celsius", self.temperature),
            ("humidity_ratio", self.humidity),
            ("battery_ratio", self.battery_percent),
            ("battery_volts", self.battery_volts),
            ("frame_current", self.frame),
        )
        for name, value in fields:
            if value is not None:
                yield name, float(value)


@dataclass(frozen=True)
class ServiceData:
    service_uuid: str
    data: bytes
    mac: str
    rssi: int | None = None


@dataclass(frozen=True)
class ExporterConfig:
    listen: str = ":9265"
    device: int = 0
    keys: Path | None = None
    vendor_prefix: str = "A4:C1:38"
    sweep_interval: float = 1.0
