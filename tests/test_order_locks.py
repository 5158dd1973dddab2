import asyncio

import pytest

from swapengine.execution.order_locks import OrderLocks


@pytest.mark.asyncio
async def test_shared_lock_per_order():
    locks = OrderLocks()
    lock_a1 = await locks.get_lock("ORDER_A")
    lock_a2 = await locks.get_lock("ORDER_A")
    lock_b = await locks.get_lock("ORDER_B")
    assert lock_a1 is lock_a2
    assert lock_a1 is not lock_b
    assert len(locks) == 2


@pytest.mark.asyncio
async def test_lock_serialization():
    locks = OrderLocks()
    lock = await locks.get_lock("ORDER_X")
    active = []
    overlaps = []

    async def task(name: str):
        async with lock:
            if active:
                overlaps.append(name)
            active.append(name)
            await asyncio.sleep(0.01)
            active.remove(name)

    await asyncio.gather(*(task(str(i)) for i in range(3)))
    assert overlaps == []


@pytest.mark.asyncio
async def test_discard_skips_held_lock():
    locks = OrderLocks()
    lock = await locks.get_lock("ORDER_Y")
    async with lock:
        locks.discard("ORDER_Y")
        assert len(locks) == 1
    locks.discard("ORDER_Y")
    assert len(locks) == 0
    locks.discard("UNKNOWN")
