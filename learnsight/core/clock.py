"""Time source abstraction so analyses and caches can run on a fixed clock."""

from __future__ import annotations

import time
from datetime import UTC, datetime
from typing import Protocol


class Clock(Protocol):
    """Interface for wall-clock and monotonic time."""

    def now(self) -> datetime:
        """Current timezone-aware UTC datetime."""
        ...

    def monotonic(self) -> float:
        """Monotonic seconds, used for TTL bookkeeping."""
        ...


class SystemClock:
    """Clock backed by the host system."""

    def now(self) -> datetime:
        return datetime.now(UTC)

    def monotonic(self) -> float:
        return time.monotonic()
