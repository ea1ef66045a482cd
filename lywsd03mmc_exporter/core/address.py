"""Device address normalisation."""

from __future__ import annotations

import re

from lywsd03mmc_exporter.core.errors import InvalidAddressError

_COMPACT_RE = re.compile(r"^[0-9A-F]{12}$")
_SEPARATORS = (":", "-")


def compact_mac(address: str) -> str:
    """Return ``address`` as 12 uppercase hex digits without separators."""
    normalized = address.strip().upper()
    for separator in _SEPARATORS:
        normalized = normalized.replace(separator, "")
    if not _COMPACT_RE.match(normalized):
        raise InvalidAddressError(f"Invalid device address '{address}'")
    return normalized


def colon_mac(address: str) -> str:
    compact = compact_mac(address)
    return ":".join(compact[i : i + 2] for i in range(0, 12, 2))


def mac_from_bytes(raw: bytes, *, reverse: bool = False) -> str:
    """Hex-encode a 6-byte address field, optionally in reversed byte order."""
    if reverse:
        raw = raw[::-1]
    return raw.hex().upper()
