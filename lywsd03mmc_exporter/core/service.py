"""Service layer tying decoders, metrics, and liveness together."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass

from lywsd03mmc_exporter.core.decoders import decode_environmental
from lywsd03mmc_exporter.core.errors import (
    AddressMismatchError,
    DecodeError,
    DecryptionError,
    MissingKeyError,
)
from lywsd03mmc_exporter.core.keys import KeyStore
from lywsd03mmc_exporter.core.liveness import EXPIRY_ATC, EXPIRY_STOCK, LivenessTracker
from lywsd03mmc_exporter.core.metrics import MetricsSink
from lywsd03mmc_exporter.core.mibeacon import decode_mibeacon
from lywsd03mmc_exporter.core.model import SensorReading, ServiceData

ENVIRONMENTAL_SENSING_UUID = "0000181a-0000-1000-8000-00805f9b34fb"
XIAOMI_UUID = "0000fe95-0000-1000-8000-00805f9b34fb"

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class Route:
    decode: Callable[[bytes, str], SensorReading]
    expiry: float


class ExporterService:
    def __init__(
        self,
        *,
        keys: KeyStore | None = None,
        sink: MetricsSink | None = None,
        tracker: LivenessTracker | None = None,
    ) -> None:
        self.keys = keys or KeyStore()
        self.sink = sink or MetricsSink()
        self.tracker = tracker or LivenessTracker(self.sink.withdraw)
        self.routes: dict[str, Route] = {
            ENVIRONMENTAL_SENSING_UUID: Route(decode_environmental, EXPIRY_ATC),
            XIAOMI_UUID: Route(self._decode_mibeacon, EXPIRY_STOCK),
        }

    def _decode_mibeacon(self, data: bytes, mac: str) -> SensorReading:
        return decode_mibeacon(data, mac, self.keys)

    def handle(self, item: ServiceData) -> SensorReading | None:
        """Decode one service-data payload; publish it and bump its device.

        Decode failures are logged according to their kind and never raised.
        """
        route = self.routes.get(item.service_uuid.lower())
        if route is None:
            return None

        try:
            reading = route.decode(item.data, item.mac)
        except AddressMismatchError as exc:
            self.sink.drop(exc.reason)
            return None
        except (MissingKeyError, DecryptionError) as exc:
            LOGGER.warning("%s, skipped", exc)
            self.sink.drop(exc.reason)
            return None
        except DecodeError as exc:
            LOGGER.debug("dropping beacon from %s: %s", item.mac, exc)
            self.sink.drop(exc.reason)
            return None

        self.tracker.bump(reading.mac, route.expiry)
        self.sink.publish(reading, item.rssi)
        return reading

    def handle_all(self, items: Iterable[ServiceData]) -> list[SensorReading]:
        readings: list[SensorReading] = []
        for item in items:
            reading = self.handle(item)
            if reading is not None:
                readings.append(reading)
        return readings
