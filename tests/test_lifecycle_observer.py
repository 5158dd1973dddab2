"""
Tests for the lifecycle observer: automatic progression, confirmation
counting, override precedence, failure isolation and tick scheduling.
"""

import asyncio
import random

import pytest

from conftest import FixedRandom, make_request
from swapengine.errors import OrderIntegrityError
from swapengine.execution.lifecycle_observer import LifecycleObserver, TransitionPolicy
from swapengine.execution.order_state_machine import LINEAR_PATH, SwapStateMachine
from swapengine.models import SwapStatus, TERMINAL_STATUSES
from swapengine.monitoring.health import HealthChecker
from swapengine.monitoring.metrics import SwapMetrics
from swapengine.order_manager import OrderManager

ALWAYS = 0.0
NEVER = 0.99


def build(clock, roll: float = ALWAYS, retention_sec: int = 0, metrics=None, health=None):
    transitions = []
    sm = SwapStateMachine(on_state_change=lambda o, f, t: transitions.append((o.id, f, t)))
    manager = OrderManager(
        state_machine=sm,
        rng=random.Random(11),
        clock=clock,
        retention_sec=retention_sec,
    )
    observer = LifecycleObserver(
        manager,
        policy=TransitionPolicy(rng=FixedRandom(roll)),
        interval_sec=0.01,
        metrics=metrics,
        health=health,
    )
    return manager, observer, transitions


class TestProgression:
    @pytest.mark.asyncio
    async def test_fast_chain_walks_linear_path(self, clock):
        manager, observer, transitions = build(clock)
        order = await manager.create_order(make_request("ETH", "USDT", "1"))

        statuses = []
        for _ in range(4):
            await observer.tick()
            statuses.append(manager.get_order(order.id).status)

        assert statuses == [
            SwapStatus.CONFIRMING,
            SwapStatus.EXCHANGING,  # 1/1 confirmation reached in the same tick
            SwapStatus.SENDING,
            SwapStatus.COMPLETED,
        ]
        assert [(f, t) for _, f, t in transitions] == list(zip(LINEAR_PATH, LINEAR_PATH[1:]))

        final = manager.get_order(order.id)
        assert final.confirmations == 1
        assert final.tx_hash_in.startswith("0x") and len(final.tx_hash_in) == 66
        assert final.tx_hash_out is not None
        assert final.logs[-1].message == "Settlement complete."

    @pytest.mark.asyncio
    async def test_btc_needs_three_confirmations(self, clock):
        manager, observer, _ = build(clock)
        order = await manager.create_order(make_request("BTC", "ETH", "0.5"))

        await observer.tick()
        snap = manager.get_order(order.id)
        assert snap.status == SwapStatus.CONFIRMING
        assert snap.confirmations == 0

        seen = []
        for _ in range(3):
            await observer.tick()
            snap = manager.get_order(order.id)
            seen.append((snap.confirmations, snap.status))

        assert seen == [
            (1, SwapStatus.CONFIRMING),
            (2, SwapStatus.CONFIRMING),
            (3, SwapStatus.EXCHANGING),
        ]
        messages = [entry.message for entry in snap.logs]
        assert "Block confirmation 3/3." in messages

    @pytest.mark.asyncio
    async def test_no_progress_when_rolls_fail(self, clock):
        manager, observer, transitions = build(clock, roll=NEVER)
        order = await manager.create_order(make_request())
        for _ in range(10):
            result = await observer.tick()
            assert result.advanced == 0
        snap = manager.get_order(order.id)
        assert snap.status == SwapStatus.AWAITING_DEPOSIT
        assert len(snap.logs) == 1
        assert transitions == []

    @pytest.mark.asyncio
    async def test_random_run_only_reaches_completed(self, clock):
        manager = OrderManager(rng=random.Random(5), clock=clock)
        observer = LifecycleObserver(manager, policy=TransitionPolicy(rng=random.Random(42)))
        ids = [(await manager.create_order(make_request(sym, "ETH", "1"))).id for sym in ("BTC", "XMR", "SOL", "USDT")]

        last_conf = {oid: 0 for oid in ids}
        for _ in range(500):
            await observer.tick()
            for oid in ids:
                snap = manager.get_order(oid)
                assert snap.status not in (SwapStatus.EXPIRED, SwapStatus.REFUNDED)
                assert last_conf[oid] <= snap.confirmations <= snap.required_confirmations
                last_conf[oid] = snap.confirmations
            if all(manager.get_order(oid).status == SwapStatus.COMPLETED for oid in ids):
                break

        assert all(manager.get_order(oid).status == SwapStatus.COMPLETED for oid in ids)


class TestOverridePrecedence:
    @pytest.mark.asyncio
    async def test_expired_order_is_left_alone(self, clock):
        manager, observer, _ = build(clock)
        order = await manager.create_order(make_request())
        await observer.tick()
        await manager.override_status(order.id, "EXPIRED")
        before = manager.get_order(order.id)

        for _ in range(5):
            await observer.tick()

        after = manager.get_order(order.id)
        assert after.status == SwapStatus.EXPIRED
        assert after.logs == before.logs
        assert after.confirmations == before.confirmations

    @pytest.mark.asyncio
    async def test_completed_order_is_frozen(self, clock):
        manager, observer, _ = build(clock)
        order = await manager.create_order(make_request("ETH", "BTC", "1"))
        for _ in range(4):
            await observer.tick()
        done = manager.get_order(order.id)
        assert done.status in TERMINAL_STATUSES

        result = await observer.tick()
        assert result.scanned == 0
        assert manager.get_order(order.id).logs == done.logs


class TestIsolation:
    @pytest.mark.asyncio
    async def test_failing_order_does_not_stop_tick(self, clock, monkeypatch):
        metrics = SwapMetrics()
        manager, observer, _ = build(clock, metrics=metrics)
        bad = await manager.create_order(make_request())
        good = await manager.create_order(make_request())
        original = manager.update_order

        def flaky(order):
            if order.id == bad.id:
                raise OrderIntegrityError(order.id, "simulated write failure")
            original(order)

        monkeypatch.setattr(manager, "update_order", flaky)
        result = await observer.tick()

        assert result.errors == 1
        assert bad.id in result.failed_ids
        assert manager.get_order(good.id).status == SwapStatus.CONFIRMING
        assert manager.get_order(bad.id).status == SwapStatus.AWAITING_DEPOSIT
        assert metrics.registry.get_sample_value("swap_observer_order_errors_total") == 1.0


class TestScheduling:
    @pytest.mark.asyncio
    async def test_overlapping_tick_is_skipped(self, clock, monkeypatch):
        manager, observer, _ = build(clock)
        release = asyncio.Event()
        calls = []

        async def slow_tick():
            calls.append(1)
            await release.wait()

        monkeypatch.setattr(observer, "tick", slow_tick)

        assert observer.schedule_tick() is True
        await asyncio.sleep(0)
        assert observer.schedule_tick() is False
        assert observer.ticks_skipped == 1

        release.set()
        await observer._tick_task
        assert observer.schedule_tick() is True
        await observer._tick_task
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_start_and_stop(self, clock):
        health = HealthChecker()
        manager, observer, _ = build(clock, health=health)
        await manager.create_order(make_request())
        observer.start()
        observer.start()
        assert observer.running
        await asyncio.sleep(0.1)
        await observer.stop()
        assert not observer.running
        assert observer.ticks_run >= 1
        assert health.get_status().components["observer"] is True

    @pytest.mark.asyncio
    async def test_tick_prunes_expired_orders(self, clock):
        manager, observer, _ = build(clock, retention_sec=60)
        order = await manager.create_order(make_request())
        await manager.override_status(order.id, "COMPLETED")
        clock.advance(120_000)

        result = await observer.tick()

        assert result.pruned == 1
        assert manager.get_order(order.id) is None


class TestPolicy:
    def test_confirm_prob_by_family(self):
        policy = TransitionPolicy()
        assert policy.confirm_prob("BTC") == policy.confirm_prob_pow
        assert policy.confirm_prob("eth") == policy.confirm_prob_fast

    def test_roll(self):
        assert TransitionPolicy(rng=FixedRandom(0.2)).roll(0.3)
        assert not TransitionPolicy(rng=FixedRandom(0.3)).roll(0.3)
