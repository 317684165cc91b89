"""Per-key asyncio locks.

Used to serialize find-or-create sequences that share the same match
query fingerprint, and read-modify-write sequences on one record id.
Entries are dropped once no task holds or waits on them.
"""

import asyncio
import json
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator


def fingerprint(value: Any) -> str:
    """Build a stable string key for a JSON-like value."""
    return json.dumps(value, sort_keys=True, default=str, separators=(",", ":"))


class KeyedLock:
    """A registry of asyncio locks addressed by string key."""

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._waiters: dict[str, int] = {}

    @asynccontextmanager
    async def acquire(self, key: str) -> AsyncIterator[None]:
        """Hold the lock for ``key`` for the duration of the block."""
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        self._waiters[key] = self._waiters.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._waiters[key] -= 1
            if self._waiters[key] == 0:
                del self._waiters[key]
                del self._locks[key]

    def __len__(self) -> int:
        return len(self._locks)
