"""Shared, TTL-bound and capacity-bound cache of search results.

Entries are immutable once written. Staleness depends only on elapsed
time: re-ingesting a bylaw does not invalidate cached results for it until
their TTL runs out. Reads never extend an entry's lifetime, and eviction at
capacity drops the oldest *inserted* entry (not the least recently read).
"""

from __future__ import annotations

import json
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Generic, TypeVar

T = TypeVar("T")


def fingerprint(
    query: str, filters: dict[str, Any], limit: int | None = None, min_score: float | None = None
) -> str:
    """Cache key from the lower-cased query and its parameters.

    Caller identity is never part of the key, so any two callers asking the
    same question share one entry.
    """
    payload = {"filters": filters, "limit": limit, "minScore": min_score}
    return f"{query.strip().lower()}|{json.dumps(payload, sort_keys=True)}"


@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    value: T
    stored_at: float


class ResultCache(Generic[T]):
    """Fingerprint → results map guarded by a single lock.

    Args:
        ttl_seconds: Age after which an entry is treated as a miss.
        capacity: Maximum number of entries.
        clock: Monotonic clock in seconds (replaced in tests).
        purge_interval: Minimum seconds between sweeps of expired entries;
            a sweep runs inside ``put`` once the interval has elapsed.
    """

    def __init__(
        self,
        ttl_seconds: float = 300.0,
        capacity: int = 100,
        clock: Callable[[], float] = time.monotonic,
        purge_interval: float = 60.0,
    ) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be > 0")
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self.ttl_seconds = ttl_seconds
        self.capacity = capacity
        self._clock = clock
        self.purge_interval = purge_interval
        self._last_purge = clock()
        self._entries: dict[str, CacheEntry[T]] = {}
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def get(self, key: str) -> T | None:
        """Return the fresh value for *key*, or None. Stale entries are dropped."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return None
            if self._is_stale(entry):
                del self._entries[key]
                self._misses += 1
                return None
            self._hits += 1
            return entry.value

    def put(self, key: str, value: T) -> None:
        """Insert *value*, evicting the oldest insertion when full.

        Two requests that miss on the same key concurrently both compute and
        both insert; the later insert wins.
        """
        with self._lock:
            now = self._clock()
            if now - self._last_purge >= self.purge_interval:
                self._purge_locked(now)
            if key in self._entries:
                del self._entries[key]
            while len(self._entries) >= self.capacity:
                oldest = next(iter(self._entries))
                del self._entries[oldest]
                self._evictions += 1
            self._entries[key] = CacheEntry(value=value, stored_at=now)

    def purge_expired(self) -> int:
        """Drop every expired entry now; returns how many were dropped."""
        with self._lock:
            return self._purge_locked(self._clock())

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def stats(self) -> dict[str, int]:
        with self._lock:
            return {
                "size": len(self._entries),
                "capacity": self.capacity,
                "hits": self._hits,
                "misses": self._misses,
                "evictions": self._evictions,
            }

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def _purge_locked(self, now: float) -> int:
        stale = [k for k, e in self._entries.items() if now - e.stored_at >= self.ttl_seconds]
        for key in stale:
            del self._entries[key]
        self._last_purge = now
        return len(stale)

    def _is_stale(self, entry: CacheEntry[T]) -> bool:
        return self._clock() - entry.stored_at >= self.ttl_seconds
