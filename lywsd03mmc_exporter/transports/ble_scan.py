"""Passive BLE advertisement scanning using bleak."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterator, Mapping
from typing import Any

from lywsd03mmc_exporter.core.address import compact_mac
from lywsd03mmc_exporter.core.errors import InvalidAddressError, ScanError
from lywsd03mmc_exporter.core.model import ServiceData

TELINK_VENDOR_PREFIX = "A4:C1:38"
LOGGER = logging.getLogger(__name__)


def iter_service_data(
    address: str,
    service_data: Mapping[str, bytes],
    rssi: int | None,
    *,
    vendor_prefix: str = TELINK_VENDOR_PREFIX,
) -> Iterator[ServiceData]:
    """Split one advertisement into per-service payloads from matching vendors."""
    if not address.upper().startswith(vendor_prefix.upper()):
        return
    try:
        mac = compact_mac(address)
    except InvalidAddressError:
        # macOS reports CoreBluetooth UUIDs instead of hardware addresses
        LOGGER.debug("ignoring advertisement from non-MAC address %s", address)
        return
    for uuid, data in service_data.items():
        yield ServiceData(service_uuid=uuid.lower(), data=bytes(data), mac=mac, rssi=rssi)


class BleakScanTransport:
    def __init__(self, *, device: int = 0, vendor_prefix: str = TELINK_VENDOR_PREFIX) -> None:
        self.adapter = f"hci{device}"
        self.vendor_prefix = vendor_prefix

    def scan(
        self,
        handler: Callable[[ServiceData], object],
        *,
        duration: float | None = None,
    ) -> None:
        try:
            from bleak import BleakScanner  # type: ignore
        except Exception as exc:  # pragma: no cover - import failure path
            raise ScanError(
                "BLE scanning requires 'bleak'. Install dependency and retry."
            ) from exc

        def _detection_callback(device: Any, advertisement: Any) -> None:
            for item in iter_service_data(
                device.address,
                advertisement.service_data,
                advertisement.rssi,
                vendor_prefix=self.vendor_prefix,
            ):
                handler(item)

        async def _run() -> None:
            async with BleakScanner(
                detection_callback=_detection_callback,
                adapter=self.adapter,
            ):
                LOGGER.info("scanning on %s", self.adapter)
                if duration is None:
                    await asyncio.Event().wait()
                else:
                    await asyncio.sleep(duration)

        try:
            asyncio.run(_run())
        except ScanError:
            raise
        except Exception as exc:
            raise ScanError(f"BLE scan failed on {self.adapter}: {exc}") from exc
