from __future__ import annotations

import pytest
from cryptography.hazmat.primitives.ciphers.aead import AESCCM

MAC = "4C5957534430"
ATC_FRAME = bytes.fromhex("4c 59 57 53 44 30 01 0c 35 64 0b b8 7b")
PVVX_FRAME = bytes.fromhex("30 44 53 57 59 4c 78 0a b4 14 b8 0b 64 7b 00")

XIAOMI_MAC = "A4C138AABBCC"
XIAOMI_KEY = bytes.fromhex("e9ea895fac7cca6d30532432a516f3c8")
# frame control 0x5858 has the encryption bit (0x08) set, 0x5058 does not
XIAOMI_HEADER = bytes.fromhex("58585b052a")
PLAIN_HEADER = bytes.fromhex("50585b052a")


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def build_mibeacon(
    record: bytes,
    *,
    key: bytes = XIAOMI_KEY,
    mac: str = XIAOMI_MAC,
    header: bytes = XIAOMI_HEADER,
    counter: bytes = b"\x00\x00\x00",
) -> bytes:
    """Encrypt ``record`` into a MiBeacon frame the way the stock firmware does."""
    reversed_mac = bytes.fromhex(mac)[::-1]
    sealed = AESCCM(key, tag_length=4).encrypt(
        reversed_mac + header[2:5] + counter, record, b"\x11"
    )
    return header + reversed_mac + sealed[:-4] + counter + sealed[-4:]


def plain_mibeacon(record: bytes, *, mac: str = XIAOMI_MAC, header: bytes = PLAIN_HEADER) -> bytes:
    return header + bytes.fromhex(mac)[::-1] + record


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
