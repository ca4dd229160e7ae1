"""In-memory TTL cache for upstream lookups.

Keys are plain tuples. Entries expire after a fixed TTL measured on an
injectable monotonic clock so tests can advance time explicitly.
"""

import time
from collections.abc import Callable, Hashable
from dataclasses import dataclass
from typing import Any

Clock = Callable[[], float]


@dataclass
class CacheEntry:
    """A cached value and the clock reading at which it expires."""

    value: Any
    expires_at: float


class LookupCache:
    """TTL cache keyed by lookup arguments, bounded to ``max_size`` entries.

    Expired entries are purged on every write; beyond that the least
    recently read entry is evicted first. Single event loop only;
    concurrent misses for one key may each call upstream and the last
    write wins.
    """

    def __init__(self, ttl_seconds: float, max_size: int = 1000, clock: Clock = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self.max_size = max_size
        self._clock = clock
        # Insertion order doubles as recency order
        self._store: dict[Hashable, CacheEntry] = {}

    def get(self, key: Hashable) -> Any | None:
        """Look up a value by key.

        Returns None if not found or expired. Expired entries are evicted.
        """
        entry = self._store.pop(key, None)
        if entry is None:
            return None
        if self._clock() >= entry.expires_at:
            return None
        self._store[key] = entry
        return entry.value

    def put(self, key: Hashable, value: Any) -> None:
        """Store a value; a zero TTL disables caching."""
        if self.ttl_seconds <= 0:
            return
        self._store.pop(key, None)
        self.purge_expired()
        while len(self._store) >= self.max_size:
            del self._store[next(iter(self._store))]
        self._store[key] = CacheEntry(value=value, expires_at=self._clock() + self.ttl_seconds)

    def purge_expired(self) -> int:
        """Drop every expired entry; returns how many were dropped."""
        now = self._clock()
        expired = [key for key, entry in self._store.items() if now >= entry.expires_at]
        for key in expired:
            del self._store[key]
        return len(expired)

    def clear(self) -> None:
        """Clear all cached entries."""
        self._store.clear()

    @property
    def size(self) -> int:
        """Return the number of entries in the cache (expired included)."""
        return len(self._store)
