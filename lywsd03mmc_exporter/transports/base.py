"""Transport interfaces."""

from __future__ import annotations

from collections.abc import Callable
from typing import Protocol

from lywsd03mmc_exporter.core.model import ServiceData


class Scanner(Protocol):
    def scan(
        self,
        handler: Callable[[ServiceData], object],
        *,
        duration: float | None = None,
    ) -> None:
        """Deliver service data from received advertisements to ``handler``."""
