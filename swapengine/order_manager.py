"""
OrderManager: order creation, lookup, update, overrides and reporting.

The manager is the only component that inserts orders into the OrderStore.
The lifecycle observer mutates existing orders through update_order(), and
operators change status through override_status(). Both paths take the
per-order lock so their read-modify-write cycles never interleave.
"""

from __future__ import annotations

import asyncio
import json
import logging
import random
from decimal import Decimal, InvalidOperation
from typing import Callable, List, Optional

from swapengine.config.liquidity import LiquiditySettings
from swapengine.errors import InvalidStatusError, OrderNotFoundError, PartnerError
from swapengine.execution import chain_sim
from swapengine.execution.order_locks import OrderLocks
from swapengine.execution.order_state_machine import SwapStateMachine, parse_status
from swapengine.execution.order_store import OrderStore
from swapengine.models import LogType, OrderRequest, OrderSummary, Quote, SwapOrder, TERMINAL_STATUSES
from swapengine.utils import ORDER_ID_ALPHABET, format_amount, now_ms, random_from_alphabet

log = logging.getLogger("swapengine")

ORDER_ID_LENGTH = 8
DAY_MS = 24 * 3600 * 1000
RECENT_ORDERS = 10


class OrderManager:
    def __init__(
        self,
        store: Optional[OrderStore] = None,
        liquidity: Optional[LiquiditySettings] = None,
        partner=None,
        breaker=None,
        state_machine: Optional[SwapStateMachine] = None,
        price_lookup: Optional[Callable[[str], Optional[float]]] = None,
        internal_quote: Optional[Callable[[str, str], Quote]] = None,
        metrics=None,
        rng: Optional[random.Random] = None,
        retention_sec: int = 0,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.store = store or OrderStore()
        self.liquidity = liquidity or LiquiditySettings()
        self.partner = partner
        self.breaker = breaker
        self.state_machine = state_machine or SwapStateMachine()
        self.price_lookup = price_lookup
        self.internal_quote = internal_quote
        self.metrics = metrics
        self.rng = rng or random.Random()
        self.retention_ms = retention_sec * 1000
        self.clock = clock
        self.locks = OrderLocks()

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    async def create_order(self, request: OrderRequest) -> SwapOrder:
        """
        Create and store a new order in AWAITING_DEPOSIT.

        In PARTNER liquidity mode the settlement partner is asked to open the
        exchange first; any partner failure falls back to the internal path
        and is recorded in the order log.
        """
        from_symbol = request.from_symbol.upper()
        to_symbol = request.to_symbol.upper()
        created = self.clock()

        order = SwapOrder(
            id=self._new_id(),
            from_symbol=from_symbol,
            to_symbol=to_symbol,
            from_amount=request.from_amount,
            to_amount=request.to_amount,
            destination_address=request.destination_address,
            deposit_address=chain_sim.deposit_address(from_symbol, self.rng),
            required_confirmations=chain_sim.required_confirmations(from_symbol),
            rate=request.rate,
            provider=request.provider,
            created_at=created,
        )
        order.append_log("Order created and pending deposit.", LogType.INFO, ts=created)

        cfg = self.liquidity.current
        if cfg.partner_enabled and self.partner is not None:
            await self._route_to_partner(order)

        self.store.insert(order)
        if self.metrics:
            self.metrics.orders_created.labels(
                from_symbol=from_symbol, to_symbol=to_symbol, provider=order.provider
            ).inc()
        log.info(json.dumps({
            "event": "order_created",
            "order_id": order.id,
            "route": f"{order.from_amount} {from_symbol} -> {order.to_amount} {to_symbol}",
            "provider": order.provider,
            "required_confirmations": order.required_confirmations,
        }))
        return order

    async def _route_to_partner(self, order: SwapOrder) -> None:
        partner_name = self.liquidity.current.partner_name
        if self.breaker is not None and not self.breaker.allow():
            self._partner_fallback(order, partner_name, "circuit open")
            return
        try:
            exchange = await self.partner.create_exchange(
                order.from_symbol, order.to_symbol, order.from_amount, order.destination_address
            )
        except PartnerError as exc:
            if self.breaker is not None:
                self.breaker.record_failure("create_exchange", exc)
            if self.metrics:
                self.metrics.partner_calls.labels(operation="create_exchange", result="error").inc()
            self._partner_fallback(order, partner_name, exc.detail)
            return

        if self.breaker is not None:
            self.breaker.record_success()
        if self.metrics:
            self.metrics.partner_calls.labels(operation="create_exchange", result="ok").inc()
        order.deposit_address = exchange.payin_address
        order.provider = partner_name
        order.provider_id = exchange.id
        if exchange.to_amount is not None and exchange.to_amount > 0:
            order.to_amount = format_amount(exchange.to_amount)
        order.append_log(f"Routed to settlement partner {partner_name} (ref {exchange.id}).", LogType.NETWORK)
        log.info(json.dumps({
            "event": "partner_order_created",
            "order_id": order.id,
            "partner": partner_name,
            "provider_id": exchange.id,
        }))

    def _partner_fallback(self, order: SwapOrder, partner_name: str, reason: str) -> None:
        if self.metrics:
            self.metrics.partner_fallbacks.labels(operation="create_exchange").inc()
        if self.internal_quote is not None:
            quote = self.internal_quote(order.from_symbol, order.to_symbol)
            order.rate = quote.rate
            order.provider = quote.provider
            order.to_amount = format_amount(Decimal(order.from_amount) * Decimal(str(quote.rate)))
        order.append_log(
            f"Partner {partner_name} unavailable ({reason}); settling via internal liquidity ({order.provider}).",
            LogType.NETWORK,
        )
        log.warning(json.dumps({
            "event": "partner_order_fallback",
            "order_id": order.id,
            "partner": partner_name,
            "reason": reason,
            "provider": order.provider,
        }))

    def _new_id(self) -> str:
        while True:
            candidate = random_from_alphabet(self.rng, ORDER_ID_ALPHABET, ORDER_ID_LENGTH)
            if candidate not in self.store:
                return candidate

    # ------------------------------------------------------------------
    # Reads / writes
    # ------------------------------------------------------------------

    def get_order(self, order_id: str) -> Optional[SwapOrder]:
        return self.store.get(order_id)

    def require_order(self, order_id: str) -> SwapOrder:
        order = self.store.get(order_id)
        if order is None:
            raise OrderNotFoundError(order_id)
        return order

    def get_all_orders(self) -> List[SwapOrder]:
        """Snapshot copies in store order; callers sort by createdAt."""
        return self.store.all()

    def update_order(self, order: SwapOrder) -> None:
        """Idempotent replace-by-id; raises OrderIntegrityError on invariant violations."""
        self.store.replace(order)

    async def lock_for(self, order_id: str) -> asyncio.Lock:
        return await self.locks.get_lock(order_id)

    async def override_status(self, order_id: str, status: object, actor: str = "admin") -> SwapOrder:
        """
        Force an order into any status, bypassing the linear state machine.

        On failure (unknown id or status) the order is left unchanged.
        """
        target = parse_status(status)
        if target is None:
            raise InvalidStatusError(status)
        lock = await self.lock_for(order_id)
        async with lock:
            order = self.require_order(order_id)
            self.state_machine.override(order, target, actor=actor)
            self.store.replace(order, force=True)
        if self.metrics:
            self.metrics.admin_overrides.labels(status=target.value).inc()
        return order

    # ------------------------------------------------------------------
    # Reporting / retention
    # ------------------------------------------------------------------

    def get_summary(self) -> OrderSummary:
        """Derived on demand from the current store contents."""
        now = self.clock()
        orders = self.store.all()
        active = [o for o in orders if o.status not in TERMINAL_STATUSES]
        pending_value = Decimal(0)
        for o in active:
            price = self.price_lookup(o.from_symbol) if self.price_lookup else None
            if price is None:
                continue
            try:
                pending_value += Decimal(o.from_amount) * Decimal(str(price))
            except InvalidOperation:
                log.warning(json.dumps({"event": "summary_bad_amount", "order_id": o.id}))
        recent = sorted(orders, key=lambda o: o.created_at, reverse=True)[:RECENT_ORDERS]
        return OrderSummary(
            total=len(orders),
            active_count=len(active),
            new_last_24h=sum(1 for o in orders if o.created_at >= now - DAY_MS),
            pending_value_estimate=format_amount(pending_value, places=2),
            recent=recent,
        )

    def prune_expired(self) -> List[str]:
        if self.retention_ms <= 0:
            return []
        pruned = self.store.prune_terminal(self.retention_ms, now=self.clock())
        for order_id in pruned:
            self.locks.discard(order_id)
        if pruned and self.metrics:
            self.metrics.orders_pruned.inc(len(pruned))
        return pruned
