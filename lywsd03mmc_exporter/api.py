"""Stable public API for building tooling on top of lywsd03mmc-exporter.

This module is the supported integration surface for third-party callers
that want to decode beacons or run the exporter from their own scanner.
Avoid importing from internal modules unless intentionally depending on
non-stable internals.
"""

from __future__ import annotations

from pathlib import Path

from lywsd03mmc_exporter.core.address import colon_mac, compact_mac
from lywsd03mmc_exporter.core.errors import (
    AddressMismatchError,
    ConfigLoadError,
    ConfigValidationError,
    DecodeError,
    DecryptionError,
    ExporterError,
    InvalidAddressError,
    InvalidLengthError,
    KeyFileError,
    MissingKeyError,
    ScanError,
    TransportError,
    UnknownFormatError,
)
from lywsd03mmc_exporter.core.keys import KeyStore, load_keys
from lywsd03mmc_exporter.core.model import ExporterConfig, SensorReading, ServiceData
from lywsd03mmc_exporter.core.service import (
    ENVIRONMENTAL_SENSING_UUID,
    XIAOMI_UUID,
    ExporterService,
)

__all__ = [
    "ExporterError",
    "DecodeError",
    "InvalidLengthError",
    "AddressMismatchError",
    "UnknownFormatError",
    "MissingKeyError",
    "DecryptionError",
    "InvalidAddressError",
    "KeyFileError",
    "ConfigLoadError",
    "ConfigValidationError",
    "TransportError",
    "ScanError",
    "ExporterConfig",
    "SensorReading",
    "ServiceData",
    "KeyStore",
    "ENVIRONMENTAL_SENSING_UUID",
    "XIAOMI_UUID",
    "colon_mac",
    "compact_mac",
    "Client",
]


class Client:
    """Public client wrapping key loading, decoding and metric publication.

    Unlike the exporter service, `decode` raises the underlying `DecodeError`
    so callers can see why a payload was rejected.
    """

    def __init__(self, *, keys: KeyStore | None = None, key_file: Path | None = None) -> None:
        warnings: tuple[str, ...] = ()
        if key_file is not None:
            loaded = load_keys(key_file)
            keys = loaded.store
            warnings = loaded.warnings
        self._service = ExporterService(keys=keys)
        self._load_warnings = warnings

    @property
    def load_warnings(self) -> tuple[str, ...]:
        return self._load_warnings

    def decode(self, service_uuid: str, data: bytes, mac: str) -> SensorReading:
        route = self._service.routes.get(service_uuid.lower())
        if route is None:
            raise UnknownFormatError(f"Unsupported service UUID '{service_uuid}'")
        return route.decode(data, compact_mac(mac))

    def handle(self, item: ServiceData) -> SensorReading | None:
        return self._service.handle(item)

    def value(self, metric: str, mac: str) -> float | None:
        return self._service.sink.value(metric, compact_mac(mac))

    def expire(self, now: float | None = None) -> list[str]:
        return self._service.tracker.withdraw_expired(now)
