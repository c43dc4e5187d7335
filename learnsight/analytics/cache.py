"""
Analysis Cache - TTL cache for per-user analysis results.

Entries are keyed by (user_id, kind) and replaced wholesale. Expiry is
checked on read against the injected clock; there are no background timers,
so the cache has an explicit init()/shutdown() lifecycle instead.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from loguru import logger

from learnsight.core.clock import Clock, SystemClock

DEFAULT_TTLS = {
    "patterns": 300,
    "profile": 600,
    "recommendations": 300,
}


@runtime_checkable
class CacheBackend(Protocol):
    """Minimal cache interface used by the service."""

    def get(self, user_id: str, kind: str) -> Any | None:
        ...

    def set(self, user_id: str, kind: str, value: Any) -> None:
        ...

    def clear(self) -> None:
        ...


@dataclass(frozen=True)
class CacheEntry:
    value: Any
    stored_at: float  # monotonic seconds
    ttl: float

    def is_expired(self, now: float) -> bool:
        return now - self.stored_at >= self.ttl


class AnalysisCache:
    """
    Lock-protected in-process cache with per-kind TTLs.

    Concurrent misses may both recompute; the last writer wins.
    """

    def __init__(self, clock: Clock | None = None, ttl_by_kind: dict[str, float] | None = None):
        self.clock = clock or SystemClock()
        self.ttl_by_kind = {**DEFAULT_TTLS, **(ttl_by_kind or {})}
        self._entries: dict[tuple[str, str], CacheEntry] = {}
        self._lock = threading.Lock()
        self._active = False
        self.hits = 0
        self.misses = 0

    # ----------------------------------------
    # Lifecycle
    # ----------------------------------------

    def init(self) -> AnalysisCache:
        with self._lock:
            self._active = True
        logger.debug(f"Analysis cache started (ttls={self.ttl_by_kind})")
        return self

    def shutdown(self) -> None:
        with self._lock:
            self._entries.clear()
            self._active = False
        logger.debug("Analysis cache shut down")

    @property
    def is_active(self) -> bool:
        return self._active

    # ----------------------------------------
    # CacheBackend
    # ----------------------------------------

    def get(self, user_id: str, kind: str) -> Any | None:
        """Return the cached value, or None when missing, expired or inactive."""
        key = (user_id, kind)
        with self._lock:
            if not self._active:
                return None
            entry = self._entries.get(key)
            if entry is None:
                self.misses += 1
                return None
            if entry.is_expired(self.clock.monotonic()):
                del self._entries[key]
                self.misses += 1
                return None
            self.hits += 1
            return entry.value

    def set(self, user_id: str, kind: str, value: Any) -> None:
        ttl = self.ttl_by_kind.get(kind)
        if ttl is None:
            raise KeyError(f"Unknown cache kind: {kind}")
        with self._lock:
            if not self._active:
                return
            self._entries[(user_id, kind)] = CacheEntry(value=value, stored_at=self.clock.monotonic(), ttl=ttl)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def invalidate(self, user_id: str) -> int:
        """Drop every entry for a user. Returns the number removed."""
        with self._lock:
            keys = [k for k in self._entries if k[0] == user_id]
            for key in keys:
                del self._entries[key]
        if keys:
            logger.debug(f"Invalidated {len(keys)} cache entries for user={user_id}")
        return len(keys)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
