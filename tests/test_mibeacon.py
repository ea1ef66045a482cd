from __future__ import annotations

import pytest

from conftest import XIAOMI_HEADER, XIAOMI_KEY, XIAOMI_MAC, build_mibeacon, plain_mibeacon
from lywsd03mmc_exporter.core.errors import (
    AddressMismatchError,
    DecryptionError,
    InvalidLengthError,
    MissingKeyError,
)
from lywsd03mmc_exporter.core.keys import KeyStore
from lywsd03mmc_exporter.core.mibeacon import (
    ciphertext,
    decode_mibeacon,
    decode_record,
    decrypt,
    nonce,
)
from lywsd03mmc_exporter.core.model import SensorReading

KEYS = KeyStore({XIAOMI_MAC: XIAOMI_KEY})
TEMPERATURE = bytes.fromhex("04 10 02 0c 01")
HUMIDITY = bytes.fromhex("06 10 02 12 02")
BATTERY = bytes.fromhex("0a 10 01 5d")
TEMPERATURE_HUMIDITY = bytes.fromhex("0d 10 04 0c 01 12 02")


def test_nonce_and_ciphertext_layout() -> None:
    frame = build_mibeacon(TEMPERATURE)
    reversed_mac = bytes.fromhex(XIAOMI_MAC)[::-1]

    assert nonce(frame) == reversed_mac + XIAOMI_HEADER[2:5] + frame[-7:-4]
    assert len(nonce(frame)) == 12
    assert ciphertext(frame) == frame[11:-7] + frame[-4:]
    assert len(ciphertext(frame)) == len(TEMPERATURE) + 4


def test_decrypt_recovers_record() -> None:
    assert decrypt(build_mibeacon(TEMPERATURE), XIAOMI_KEY) == TEMPERATURE


@pytest.mark.parametrize(
    ("record", "expected"),
    [
        (TEMPERATURE, SensorReading(mac=XIAOMI_MAC, temperature=26.8)),
        (HUMIDITY, SensorReading(mac=XIAOMI_MAC, humidity=53.0)),
        (BATTERY, SensorReading(mac=XIAOMI_MAC, battery_percent=93.0)),
        (
            TEMPERATURE_HUMIDITY,
            SensorReading(mac=XIAOMI_MAC, temperature=26.8, humidity=53.0),
        ),
    ],
)
def test_decode_encrypted_records(record: bytes, expected: SensorReading) -> None:
    assert decode_mibeacon(build_mibeacon(record), XIAOMI_MAC, KEYS) == expected


def test_negative_temperature_record() -> None:
    reading = decode_record(bytes.fromhex("04 10 02 9c ff"), XIAOMI_MAC)
    assert reading.temperature == -10.0


def test_battery_is_decoded_as_received() -> None:
    assert decode_record(bytes.fromhex("0a 10 01 64"), XIAOMI_MAC).battery_percent == 100.0
    assert decode_record(bytes.fromhex("0a 10 01 07"), XIAOMI_MAC).battery_percent == 7.0


def test_unknown_record_tag_yields_empty_reading() -> None:
    reading = decode_record(bytes.fromhex("07 10 02 00 00"), XIAOMI_MAC)
    assert reading == SensorReading(mac=XIAOMI_MAC)
    assert list(reading.metrics()) == []


def test_combined_record_requires_length_discriminator() -> None:
    reading = decode_record(bytes.fromhex("0d 10 03 0c 01 12 02"), XIAOMI_MAC)
    assert reading == SensorReading(mac=XIAOMI_MAC)


def test_truncated_record_rejected() -> None:
    with pytest.raises(InvalidLengthError):
        decode_record(bytes.fromhex("04 10 02 0c"), XIAOMI_MAC)


def test_plaintext_fast_path_needs_no_key() -> None:
    frame = plain_mibeacon(TEMPERATURE_HUMIDITY)
    assert len(frame) == 18
    reading = decode_mibeacon(frame, XIAOMI_MAC, KeyStore())
    assert reading == SensorReading(mac=XIAOMI_MAC, temperature=26.8, humidity=53.0)


def test_short_frame_rejected() -> None:
    frame = build_mibeacon(TEMPERATURE)[:17]
    with pytest.raises(InvalidLengthError):
        decode_mibeacon(frame, XIAOMI_MAC, KEYS)


def test_address_mismatch_rejected() -> None:
    with pytest.raises(AddressMismatchError):
        decode_mibeacon(build_mibeacon(TEMPERATURE), "A4C138000000", KEYS)


def test_missing_key_rejected() -> None:
    with pytest.raises(MissingKeyError):
        decode_mibeacon(build_mibeacon(TEMPERATURE), XIAOMI_MAC, KeyStore())


def test_wrong_key_fails_authentication() -> None:
    keys = KeyStore({XIAOMI_MAC: bytes(16)})
    with pytest.raises(DecryptionError):
        decode_mibeacon(build_mibeacon(TEMPERATURE), XIAOMI_MAC, keys)


def test_any_tampered_byte_fails_authentication() -> None:
    frame = build_mibeacon(TEMPERATURE_HUMIDITY)
    # header fields feeding the nonce, then payload, counter and tag
    positions = [2, 3, 4, *range(11, len(frame))]
    for index in positions:
        tampered = bytearray(frame)
        tampered[index] ^= 0x01
        with pytest.raises(DecryptionError):
            decode_mibeacon(bytes(tampered), XIAOMI_MAC, KEYS)


def test_marker_byte_in_encrypted_frame_is_still_authenticated() -> None:
    checked = 0
    for n in range(8):
        frame = build_mibeacon(TEMPERATURE, counter=bytes([n, 0x00, 0x00]))
        if frame[12] == 0x10:
            continue
        tampered = bytearray(frame)
        tampered[12] = 0x10
        with pytest.raises(DecryptionError):
            decode_mibeacon(bytes(tampered), XIAOMI_MAC, KEYS)
        checked += 1
    assert checked > 0


def test_encrypted_frames_decode_whatever_the_ciphertext_bytes() -> None:
    expected = SensorReading(mac=XIAOMI_MAC, temperature=26.8)
    for n in range(256):
        frame = build_mibeacon(TEMPERATURE, counter=bytes([n, 0x01, 0x00]))
        assert decode_mibeacon(frame, XIAOMI_MAC, KEYS) == expected


def test_plaintext_record_with_encryption_flag_needs_key() -> None:
    frame = plain_mibeacon(TEMPERATURE_HUMIDITY, header=XIAOMI_HEADER)
    with pytest.raises(MissingKeyError):
        decode_mibeacon(frame, XIAOMI_MAC, KeyStore())
