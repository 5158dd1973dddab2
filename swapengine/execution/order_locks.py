"""
Per-order lock coordinator.

Provides a single asyncio.Lock per order id so the lifecycle observer and
administrative overrides serialize their read-modify-write cycles on the
same order.
"""

from __future__ import annotations

import asyncio
from typing import Dict


class OrderLocks:
    def __init__(self) -> None:
        # map order id -> asyncio.Lock
        self._locks: Dict[str, asyncio.Lock] = {}
        # guard for creating locks
        self._guard = asyncio.Lock()

    async def get_lock(self, order_id: str) -> asyncio.Lock:
        """Return the shared asyncio.Lock for the given order id."""
        async with self._guard:
            lock = self._locks.get(order_id)
            if lock is None:
                lock = asyncio.Lock()
                self._locks[order_id] = lock
            return lock

    def discard(self, order_id: str) -> None:
        """Forget the lock of a pruned order (no-op while it is held)."""
        lock = self._locks.get(order_id)
        if lock is not None and not lock.locked():
            del self._locks[order_id]

    def __len__(self) -> int:
        return len(self._locks)
