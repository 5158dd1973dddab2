"""
Order execution layer.

- OrderStore: in-memory source of truth for orders
- SwapStateMachine: linear status transitions plus admin overrides
- LifecycleObserver: periodic automatic progression of orders
- OrderLocks: per-order serialization of read-modify-write cycles
"""

from swapengine.execution.lifecycle_observer import LifecycleObserver, TickResult, TransitionPolicy
from swapengine.execution.order_locks import OrderLocks
from swapengine.execution.order_state_machine import (
    LINEAR_PATH,
    VALID_TRANSITIONS,
    SwapStateMachine,
    TransitionResult,
    next_status,
    parse_status,
)
from swapengine.execution.order_store import OrderStore

__all__ = [
    "LifecycleObserver",
    "TickResult",
    "TransitionPolicy",
    "OrderLocks",
    "LINEAR_PATH",
    "VALID_TRANSITIONS",
    "SwapStateMachine",
    "TransitionResult",
    "next_status",
    "parse_status",
    "OrderStore",
]
