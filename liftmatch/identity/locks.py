"""Per-key asyncio lock registry."""

import asyncio
import weakref
from collections.abc import Hashable


class KeyedLocks:
    """Hand out one asyncio.Lock per key.

    Locks are weakly held, so a key's lock disappears once nobody holds or
    waits on it.
    """

    def __init__(self):
        self._locks: weakref.WeakValueDictionary[Hashable, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    def lock(self, key: Hashable) -> asyncio.Lock:
        """Get the lock for a key, creating it on first use."""
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    def __len__(self) -> int:
        return len(self._locks)
