"""Per-key asyncio locks.

Shared mutable state in this system is keyed (instrument id, user id), so
writers serialize per key instead of behind one global lock.
"""

import asyncio
from collections.abc import AsyncIterator, Hashable
from contextlib import asynccontextmanager


class KeyedLock:
    """Map of lazily created asyncio.Lock objects, one per key."""

    def __init__(self):
        self._locks: dict[Hashable, asyncio.Lock] = {}

    def _lock_for(self, key: Hashable) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    @asynccontextmanager
    async def acquire(self, key: Hashable) -> AsyncIterator[None]:
        """Hold the lock for ``key`` for the duration of the block."""
        async with self._lock_for(key):
            yield

