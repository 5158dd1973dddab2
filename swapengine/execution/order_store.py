"""
OrderStore: in-memory keyed collection of swap orders.

The store is the single source of truth for order state. It hands out deep
copies so callers can never mutate stored records behind its back, and it
checks every replacing write against the order invariants:

- confirmations never decrease and never exceed requiredConfirmations
- the audit log only grows (existing entries are never edited)
- terminal orders are frozen (only force=True writes, used by the
  administrative override, may touch them)

Volatile by design: everything is lost on process restart.
"""

from __future__ import annotations

import copy
import json
import logging
from typing import Dict, List, Optional

from swapengine.errors import OrderIntegrityError
from swapengine.models import SwapOrder
from swapengine.utils import now_ms

log = logging.getLogger("swapengine")


class OrderStore:
    def __init__(self) -> None:
        self._orders: Dict[str, SwapOrder] = {}

    def __len__(self) -> int:
        return len(self._orders)

    def __contains__(self, order_id: str) -> bool:
        return order_id in self._orders

    def insert(self, order: SwapOrder) -> None:
        """Add a new order. Ids are unique for the process lifetime."""
        if order.id in self._orders:
            raise OrderIntegrityError(order.id, "duplicate order id")
        self._orders[order.id] = copy.deepcopy(order)

    def get(self, order_id: str) -> Optional[SwapOrder]:
        order = self._orders.get(order_id)
        return copy.deepcopy(order) if order is not None else None

    def all(self) -> List[SwapOrder]:
        return [copy.deepcopy(o) for o in self._orders.values()]

    def ids(self) -> List[str]:
        return list(self._orders.keys())

    def replace(self, order: SwapOrder, force: bool = False) -> None:
        """
        Idempotent replace-by-id.

        Writing the same snapshot twice leaves the stored state unchanged.
        """
        prev = self._orders.get(order.id)
        if prev is None:
            raise OrderIntegrityError(order.id, "unknown order id")
        self._check(prev, order, force)
        self._orders[order.id] = copy.deepcopy(order)

    def prune_terminal(self, max_age_ms: int, now: Optional[int] = None) -> List[str]:
        """
        Remove terminal orders created more than max_age_ms ago.

        Non-terminal orders are never pruned.
        """
        if max_age_ms <= 0:
            return []
        cutoff = (now if now is not None else now_ms()) - max_age_ms
        to_prune = [
            oid for oid, o in self._orders.items()
            if o.is_terminal and o.created_at < cutoff
        ]
        for oid in to_prune:
            del self._orders[oid]
        if to_prune:
            log.info(json.dumps({"event": "orders_pruned", "count": len(to_prune)}))
        return to_prune

    @staticmethod
    def _check(prev: SwapOrder, new: SwapOrder, force: bool) -> None:
        if new.confirmations > new.required_confirmations:
            raise OrderIntegrityError(new.id, "confirmations exceed requiredConfirmations")
        if new.confirmations < prev.confirmations:
            raise OrderIntegrityError(new.id, "confirmations decreased")
        if new.required_confirmations != prev.required_confirmations:
            raise OrderIntegrityError(new.id, "requiredConfirmations is fixed at creation")
        if len(new.logs) < len(prev.logs) or new.logs[: len(prev.logs)] != prev.logs:
            raise OrderIntegrityError(new.id, "audit log is append-only")
        if prev.is_terminal and not force and new != prev:
            raise OrderIntegrityError(new.id, f"order is terminal ({prev.status.value})")
