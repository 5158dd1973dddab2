"""
LifecycleObserver: the only source of automatic order progression.

Each tick walks every non-terminal order and applies the rule for its
status with a probability taken from TransitionPolicy:

    AWAITING_DEPOSIT  deposit spotted in the mempool -> CONFIRMING (txHashIn)
    CONFIRMING        +1 confirmation; at target -> EXCHANGING (same tick)
    EXCHANGING        routed and ledger adjusted -> SENDING
    SENDING           payout broadcast -> COMPLETED (txHashOut)

Orders are independent: each one is re-read under its own lock, advanced
and written back, and a failure on one order is logged and skipped without
affecting the rest of the tick. Ticks never overlap; if the previous tick
is still running when the next is due, the new one is dropped.
"""

from __future__ import annotations

import asyncio
import json
import logging
import random
import time
from dataclasses import dataclass, field
from typing import Dict, Optional

from swapengine.execution import chain_sim
from swapengine.models import LogType, SwapOrder, SwapStatus

log = logging.getLogger("swapengine")


@dataclass
class TransitionPolicy:
    """Per-tick transition probabilities plus the random source that rolls them."""
    deposit_detect_prob: float = 0.15
    confirm_prob_pow: float = 0.45
    confirm_prob_fast: float = 0.9
    exchange_prob: float = 0.6
    send_prob: float = 0.5
    rng: random.Random = field(default_factory=random.Random)

    def roll(self, probability: float) -> bool:
        return self.rng.random() < probability

    def confirm_prob(self, symbol: str) -> float:
        return self.confirm_prob_pow if chain_sim.is_proof_of_work(symbol) else self.confirm_prob_fast

    @classmethod
    def from_settings(cls, settings, rng: Optional[random.Random] = None) -> "TransitionPolicy":
        return cls(
            deposit_detect_prob=settings.deposit_detect_prob,
            confirm_prob_pow=settings.confirm_prob_pow,
            confirm_prob_fast=settings.confirm_prob_fast,
            exchange_prob=settings.exchange_prob,
            send_prob=settings.send_prob,
            rng=rng or random.Random(settings.rng_seed),
        )


@dataclass
class TickResult:
    scanned: int = 0
    advanced: int = 0
    errors: int = 0
    pruned: int = 0
    duration_ms: float = 0.0
    failed_ids: Dict[str, str] = field(default_factory=dict)


class LifecycleObserver:
    def __init__(
        self,
        manager,
        policy: Optional[TransitionPolicy] = None,
        interval_sec: float = 4.0,
        metrics=None,
        health=None,
    ) -> None:
        self.manager = manager
        self.policy = policy or TransitionPolicy()
        self.interval_sec = interval_sec
        self.metrics = metrics
        self.health = health
        self._loop_task: Optional[asyncio.Task] = None
        self._tick_task: Optional[asyncio.Task] = None
        self.ticks_run = 0
        self.ticks_skipped = 0

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    @property
    def running(self) -> bool:
        return self._loop_task is not None and not self._loop_task.done()

    def start(self) -> None:
        if self.running:
            return
        self._loop_task = asyncio.create_task(self._run(), name="lifecycle-observer")

    async def stop(self) -> None:
        for task in (self._loop_task, self._tick_task):
            if task is not None and not task.done():
                task.cancel()
        await asyncio.gather(
            *(t for t in (self._loop_task, self._tick_task) if t is not None),
            return_exceptions=True,
        )
        self._loop_task = None
        self._tick_task = None

    def schedule_tick(self) -> bool:
        """Start a tick unless one is still running. Returns False when skipped."""
        if self._tick_task is not None and not self._tick_task.done():
            self.ticks_skipped += 1
            if self.metrics:
                self.metrics.observer_ticks_skipped.inc()
            log.warning(json.dumps({"event": "observer_tick_skipped", "skipped_total": self.ticks_skipped}))
            return False
        self._tick_task = asyncio.create_task(self._guarded_tick(), name="lifecycle-tick")
        return True

    async def _run(self) -> None:
        while True:
            try:
                await asyncio.sleep(self.interval_sec)
                self.schedule_tick()
            except asyncio.CancelledError:
                break

    async def _guarded_tick(self) -> None:
        try:
            await self.tick()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            log.error(json.dumps({"event": "observer_tick_error", "err": str(exc)}))
            if self.health:
                self.health.set_component_health("observer", False, str(exc))

    # ------------------------------------------------------------------
    # Tick
    # ------------------------------------------------------------------

    async def tick(self) -> TickResult:
        started = time.monotonic()
        result = TickResult()
        active = 0
        for order_id in self.manager.store.ids():
            try:
                lock = await self.manager.lock_for(order_id)
                async with lock:
                    order = self.manager.get_order(order_id)
                    if order is None or order.is_terminal:
                        continue
                    result.scanned += 1
                    if self.advance(order):
                        self.manager.update_order(order)
                        result.advanced += 1
                    if not order.is_terminal:
                        active += 1
            except Exception as exc:
                result.errors += 1
                result.failed_ids[order_id] = str(exc)
                if self.metrics:
                    self.metrics.observer_order_errors.inc()
                log.error(json.dumps({"event": "observer_order_error", "order_id": order_id, "err": str(exc)}))

        result.pruned = len(self.manager.prune_expired())
        result.duration_ms = (time.monotonic() - started) * 1000
        self.ticks_run += 1
        if self.metrics:
            self.metrics.observer_tick_ms.observe(result.duration_ms)
            self.metrics.active_orders.set(active)
        if self.health:
            self.health.set_component_health("observer", True)
        if result.advanced or result.errors:
            log.debug(json.dumps({
                "event": "observer_tick",
                "scanned": result.scanned,
                "advanced": result.advanced,
                "errors": result.errors,
                "ms": round(result.duration_ms, 2),
            }))
        return result

    def advance(self, order: SwapOrder) -> bool:
        """
        Apply this tick's rule to one order snapshot in place.

        Returns True if the order changed and must be written back.
        """
        sm = self.manager.state_machine
        status = order.status
        policy = self.policy

        if status == SwapStatus.AWAITING_DEPOSIT:
            if not policy.roll(policy.deposit_detect_prob):
                return False
            order.tx_hash_in = chain_sim.tx_hash(order.from_symbol, policy.rng)
            sm.transition(
                order,
                SwapStatus.CONFIRMING,
                f"Inbound {order.from_symbol} deposit detected in mempool (tx {order.tx_hash_in}).",
                LogType.NETWORK,
            )
            self._count(status, SwapStatus.CONFIRMING)
            return True

        if status == SwapStatus.CONFIRMING:
            changed = False
            if order.confirmations < order.required_confirmations:
                if not policy.roll(policy.confirm_prob(order.from_symbol)):
                    return False
                order.confirmations += 1
                order.append_log(
                    f"Block confirmation {order.confirmations}/{order.required_confirmations}.",
                    LogType.NETWORK,
                )
                changed = True
            if order.confirmations >= order.required_confirmations:
                sm.transition(
                    order,
                    SwapStatus.EXCHANGING,
                    f"Deposit secured with {order.confirmations} confirmations; starting exchange.",
                    LogType.SUCCESS,
                )
                self._count(status, SwapStatus.EXCHANGING)
                changed = True
            return changed

        if status == SwapStatus.EXCHANGING:
            if not policy.roll(policy.exchange_prob):
                return False
            order.append_log(
                f"Routing {order.from_amount} {order.from_symbol} -> {order.to_symbol} via {order.provider}.",
                LogType.INFO,
            )
            sm.transition(
                order,
                SwapStatus.SENDING,
                f"Ledger adjusted; payout of {order.to_amount} {order.to_symbol} queued for {order.destination_address}.",
                LogType.INFO,
            )
            self._count(status, SwapStatus.SENDING)
            return True

        if status == SwapStatus.SENDING:
            if not policy.roll(policy.send_prob):
                return False
            order.tx_hash_out = chain_sim.tx_hash(order.to_symbol, policy.rng)
            sm.transition(
                order,
                SwapStatus.COMPLETED,
                f"Payout broadcast to {order.destination_address} (tx {order.tx_hash_out}).",
                LogType.NETWORK,
            )
            order.append_log("Settlement complete.", LogType.SUCCESS)
            self._count(status, SwapStatus.COMPLETED)
            return True

        return False

    def _count(self, from_status: SwapStatus, to_status: SwapStatus) -> None:
        if self.metrics:
            self.metrics.status_transitions.labels(from_status=from_status.value, to_status=to_status.value).inc()
