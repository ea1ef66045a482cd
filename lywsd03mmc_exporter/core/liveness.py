"""Per-device liveness tracking.

Every successfully decoded beacon bumps its device's deadline. Devices whose
deadline passes are removed and their published metrics withdrawn. All
deadlines live in one table guarded by one lock and are swept by a single
background thread, so each absence transition withdraws exactly once.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass

# Advertisement interval of each firmware, with slack.
EXPIRY_ATC = 2.5 * 10
EXPIRY_STOCK = 2.5 * 10 * 60

LOGGER = logging.getLogger(__name__)


@dataclass
class _Entry:
    deadline: float
    expiry: float


class LivenessTracker:
    def __init__(
        self,
        withdraw: Callable[[str], None],
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._withdraw = withdraw
        self._clock = clock
        self._entries: dict[str, _Entry] = {}
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    def bump(self, mac: str, expiry: float) -> bool:
        """Arm or re-arm ``mac`` to expire ``expiry`` seconds from now.

        Returns True when ``mac`` was absent and a new entry was armed.
        """
        with self._lock:
            deadline = self._clock() + expiry
            entry = self._entries.get(mac)
            if entry is None:
                self._entries[mac] = _Entry(deadline=deadline, expiry=expiry)
                return True
            entry.deadline = deadline
            entry.expiry = expiry
            return False

    def withdraw_expired(self, now: float | None = None) -> list[str]:
        """Drop every device whose deadline has passed and withdraw it.

        The withdraw callback runs with the lock held, so a concurrent bump
        either lands first (and the device survives) or afterwards (and
        creates a fresh entry).
        """
        expired: list[str] = []
        with self._lock:
            current = self._clock() if now is None else now
            for mac, entry in list(self._entries.items()):
                if entry.deadline > current:
                    continue
                del self._entries[mac]
                LOGGER.info("expiring %s", mac)
                self._withdraw(mac)
                expired.append(mac)
        return expired

    def deadline(self, mac: str) -> float | None:
        with self._lock:
            entry = self._entries.get(mac)
            return entry.deadline if entry else None

    def expiry(self, mac: str) -> float | None:
        with self._lock:
            entry = self._entries.get(mac)
            return entry.expiry if entry else None

    def __contains__(self, mac: object) -> bool:
        with self._lock:
            return mac in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def start(self, interval: float = 1.0) -> None:
        if self._thread is not None:
            return
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._run,
            args=(interval,),
            name="liveness-sweeper",
            daemon=True,
        )
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join()
            self._thread = None

    def _run(self, interval: float) -> None:
        while not self._stop.wait(interval):
            try:
                self.withdraw_expired()
            except Exception:
                LOGGER.exception("liveness sweep failed")
