"""Plaintext frame decoders for the custom ATC and PVVX firmwares.

Both firmwares advertise on the Environmental Sensing service (0x181A) and are
told apart by payload length alone:

* ATC (13 bytes): address in natural order, big-endian fields,
  temperature in tenths of a degree.
* PVVX (15 bytes): address in reversed order, little-endian fields,
  temperature and humidity in hundredths, plus a trailing flag byte.
"""

from __future__ import annotations

import struct
from collections.abc import Callable

from lywsd03mmc_exporter.core.address import mac_from_bytes
from lywsd03mmc_exporter.core.errors import (
    AddressMismatchError,
    InvalidLengthError,
    UnknownFormatError,
)
from lywsd03mmc_exporter.core.model import SensorReading

ATC_LENGTH = 13
PVVX_LENGTH = 15

# temperature (signed), humidity, battery %, battery mV, frame
_ATC_FIELDS = struct.Struct(">hBBHB")
# temperature, humidity (both signed), battery mV, battery %, frame, flags
_PVVX_FIELDS = struct.Struct("<hhHBBB")

Decoder = Callable[[bytes, str], SensorReading]


def _check_length(data: bytes, length: int, name: str) -> None:
    if len(data) != length:
        raise InvalidLengthError(
            f"{name} frame must be {length} bytes, got {len(data)}"
        )


def _check_address(embedded: str, mac: str, name: str) -> None:
    if embedded != mac:
        raise AddressMismatchError(
            f"{name} frame for {embedded} received from {mac}"
        )


def decode_atc(data: bytes, mac: str) -> SensorReading:
    _check_length(data, ATC_LENGTH, "ATC")
    embedded = mac_from_bytes(data[0:6])
    _check_address(embedded, mac, "ATC")

    temp, hum, batp, batv, frame = _ATC_FIELDS.unpack_from(data, 6)
    return SensorReading(
        mac=embedded,
        temperature=temp / 10.0,
        humidity=float(hum),
        battery_percent=float(batp),
        battery_volts=batv / 1000.0,
        frame=frame,
    )


def decode_pvvx(data: bytes, mac: str) -> SensorReading:
    _check_length(data, PVVX_LENGTH, "PVVX")
    embedded = mac_from_bytes(data[0:6], reverse=True)
    _check_address(embedded, mac, "PVVX")

    # flag byte is reserved
    temp, hum, batv, batp, frame, _flags = _PVVX_FIELDS.unpack_from(data, 6)
    return SensorReading(
        mac=embedded,
        temperature=temp / 100.0,
        humidity=hum / 100.0,
        battery_percent=float(batp),
        battery_volts=batv / 1000.0,
        frame=frame,
    )


DECODERS_BY_LENGTH: dict[int, Decoder] = {
    ATC_LENGTH: decode_atc,
    PVVX_LENGTH: decode_pvvx,
}


def decode_environmental(data: bytes, mac: str) -> SensorReading:
    """Decode an Environmental Sensing payload, picking the format by length."""
    decoder = DECODERS_BY_LENGTH.get(len(data))
    if decoder is None:
        raise UnknownFormatError(
            f"No plaintext decoder for {len(data)}-byte payload from {mac}"
        )
    return decoder(data, mac)
