"""Per-deal write serialization.

Two edits to the same deal issued back-to-back would otherwise race on
read-modify-write of its collections and lose one update. DealLockRegistry
hands out one asyncio.Lock per deal id; the workflow holds it across
"re-read deal, compute new collections, write". Locks for idle deals are
dropped so the registry does not grow with the number of deals ever touched.

Scope is one process. Multiple workers writing the same deal still need
store-level protection.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager


class DealLockRegistry:
    """asyncio.Lock per deal id, created on demand and dropped when idle."""

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._holders: dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, deal_id: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(deal_id, asyncio.Lock())
        self._holders[deal_id] = self._holders.get(deal_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._holders[deal_id] -= 1
            if self._holders[deal_id] == 0:
                del self._holders[deal_id]
                del self._locks[deal_id]

    def is_locked(self, deal_id: str) -> bool:
        lock = self._locks.get(deal_id)
        return lock is not None and lock.locked()

    def __len__(self) -> int:
        return len(self._locks)
