"""MiBeacon decoding for the stock Xiaomi firmware.

Stock firmware advertises on the Xiaomi service (0xFE95). A frame is laid out
as::

    0      2          5             11           len-7     len-4
    | ctrl | pid, cnt | MAC (rev.)  | payload    | counter | tag |

The payload is AES-CCM encrypted with the device's bind key when bit 3 of the
frame-control byte is set. Frames without that bit whose second payload byte
is the high byte of a MiBeacon object id (``0x10``) carry the record in the
clear. The decrypted payload is an object record::

    | tag | 0x10 | length | value... |
"""

from __future__ import annotations

import struct
from collections.abc import Callable

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESCCM

from lywsd03mmc_exporter.core.address import mac_from_bytes
from lywsd03mmc_exporter.core.errors import (
    AddressMismatchError,
    DecryptionError,
    InvalidLengthError,
    MissingKeyError,
)
from lywsd03mmc_exporter.core.keys import KeyStore
from lywsd03mmc_exporter.core.model import SensorReading

HEADER_LENGTH = 11
COUNTER_LENGTH = 3
TAG_LENGTH = 4
MIN_LENGTH = HEADER_LENGTH + 3 + TAG_LENGTH
ENCRYPTED_FLAG = 0x08
PLAINTEXT_MARKER = 0x10
AAD = b"\x11"

TEMPERATURE = 0x04
HUMIDITY = 0x06
BATTERY = 0x0A
TEMPERATURE_HUMIDITY = 0x0D

_INT16 = struct.Struct("<h")
_UINT16 = struct.Struct("<H")

RecordDecoder = Callable[[bytes, str], SensorReading]


def embedded_mac(data: bytes) -> str:
    return mac_from_bytes(data[5:11], reverse=True)


def is_encrypted(data: bytes) -> bool:
    return bool(data[0] & ENCRYPTED_FLAG)


def is_plaintext(data: bytes) -> bool:
    return not is_encrypted(data) and data[HEADER_LENGTH + 1] == PLAINTEXT_MARKER


def nonce(data: bytes) -> bytes:
    """Reversed MAC + product id/frame counter + trailing counter."""
    return data[5:11] + data[2:5] + data[-7:-4]


def ciphertext(data: bytes) -> bytes:
    """Encrypted payload followed by the tag; the counter is excluded."""
    return data[HEADER_LENGTH:-7] + data[-TAG_LENGTH:]


def decrypt(data: bytes, key: bytes) -> bytes:
    ccm = AESCCM(key, tag_length=TAG_LENGTH)
    try:
        return ccm.decrypt(nonce(data), ciphertext(data), AAD)
    except InvalidTag as exc:
        raise DecryptionError(
            f"Authentication failed for beacon from {embedded_mac(data)}"
        ) from exc


def _require(record: bytes, length: int) -> None:
    if len(record) < length:
        raise InvalidLengthError(
            f"Record 0x{record[0]:02X} needs {length} bytes, got {len(record)}"
        )


def _temperature(record: bytes, mac: str) -> SensorReading:
    _require(record, 5)
    (temp,) = _INT16.unpack_from(record, 3)
    return SensorReading(mac=mac, temperature=temp / 10.0)


def _humidity(record: bytes, mac: str) -> SensorReading:
    _require(record, 5)
    (hum,) = _UINT16.unpack_from(record, 3)
    return SensorReading(mac=mac, humidity=hum / 10.0)


def _battery(record: bytes, mac: str) -> SensorReading:
    _require(record, 4)
    return SensorReading(mac=mac, battery_percent=float(record[3]))


def _temperature_humidity(record: bytes, mac: str) -> SensorReading:
    if record[2] != 0x04:
        return SensorReading(mac=mac)
    _require(record, 7)
    (temp,) = _INT16.unpack_from(record, 3)
    (hum,) = _UINT16.unpack_from(record, 5)
    return SensorReading(mac=mac, temperature=temp / 10.0, humidity=hum / 10.0)


RECORD_DECODERS: dict[int, RecordDecoder] = {
    TEMPERATURE: _temperature,
    HUMIDITY: _humidity,
    BATTERY: _battery,
    TEMPERATURE_HUMIDITY: _temperature_humidity,
}


def decode_record(record: bytes, mac: str) -> SensorReading:
    """Decode a decrypted object record into a partial reading.

    Unsupported records yield a reading with no measurements.
    """
    if len(record) < 3:
        raise InvalidLengthError(f"Record from {mac} too short: {len(record)} bytes")
    decoder = RECORD_DECODERS.get(record[0])
    if decoder is None:
        return SensorReading(mac=mac)
    return decoder(record, mac)


def decode_mibeacon(data: bytes, mac: str, keys: KeyStore) -> SensorReading:
    """Decode a MiBeacon frame sent by ``mac``.

    Raises a DecodeError subclass when the frame is short, belongs to another
    device, has no key, fails authentication or carries a truncated record.
    """
    if len(data) < MIN_LENGTH:
        raise InvalidLengthError(
            f"MiBeacon frame must be at least {MIN_LENGTH} bytes, got {len(data)}"
        )

    embedded = embedded_mac(data)
    if embedded != mac:
        raise AddressMismatchError(f"MiBeacon frame for {embedded} received from {mac}")

    if is_plaintext(data):
        return decode_record(data[HEADER_LENGTH:], embedded)

    key = keys.lookup(embedded)
    if key is None:
        raise MissingKeyError(f"No key for MAC {embedded}")

    return decode_record(decrypt(data, key), embedded)
