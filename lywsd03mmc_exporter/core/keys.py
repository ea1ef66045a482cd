"""Loading of per-device MiBeacon bind keys."""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType

from lywsd03mmc_exporter.core.errors import KeyFileError

_MAC_RE = re.compile(r"^[0-9A-F]{12}$")
_KEY_RE = re.compile(r"^[0-9a-fA-F]{32}$")
LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class KeyStore:
    """Read-only mapping from compact MAC to a 16-byte AES key."""

    keys: Mapping[str, bytes] = field(default_factory=lambda: MappingProxyType({}))

    def lookup(self, mac: str) -> bytes | None:
        return self.keys.get(mac)

    def __contains__(self, mac: object) -> bool:
        return mac in self.keys

    def __len__(self) -> int:
        return len(self.keys)


@dataclass(frozen=True)
class LoadedKeys:
    store: KeyStore
    warnings: tuple[str, ...]


def parse_key_line(line: str) -> tuple[str, bytes] | None:
    """Parse ``<mac> <key>``; return None for blank lines and comments.

    Raises ValueError for malformed lines.
    """
    stripped = line.strip()
    if not stripped or stripped.startswith("#"):
        return None
    fields = stripped.split(None, 1)
    if len(fields) != 2:
        raise ValueError("expected '<mac> <key>'")
    mac, key = fields[0].upper(), fields[1].strip()
    if not _MAC_RE.match(mac):
        raise ValueError("MAC must be 12 hex digits")
    if not _KEY_RE.match(key):
        raise ValueError("key must be 32 hex digits")
    return mac, bytes.fromhex(key)


def parse_keys(lines: list[str] | tuple[str, ...], *, source: str = "<keys>") -> LoadedKeys:
    keys: dict[str, bytes] = {}
    warnings: list[str] = []
    for lineno, line in enumerate(lines, start=1):
        try:
            parsed = parse_key_line(line)
        except ValueError as exc:
            warning = f"{source}:{lineno}: invalid key line ignored ({exc})"
            warnings.append(warning)
            continue
        if parsed is None:
            continue
        mac, key = parsed
        keys[mac] = key
    return LoadedKeys(store=KeyStore(MappingProxyType(keys)), warnings=tuple(warnings))


def load_keys(path: Path) -> LoadedKeys:
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise KeyFileError(f"Could not read key file {path}: {exc}") from exc
    loaded = parse_keys(content.splitlines(), source=str(path))
    LOGGER.info("loaded %d decryption key(s) from %s", len(loaded.store), path)
    return loaded
