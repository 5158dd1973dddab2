"""
Swap State Machine - Explicit order settlement lifecycle.

Provides a formal state machine for swap orders with:
- A single linear path: no back-transitions and no skipped states
- An audit log entry for every status change
- A separate administrative override path that may set any status

State Diagram:

    AWAITING_DEPOSIT ──> CONFIRMING ──> EXCHANGING ──> SENDING ──> COMPLETED

    EXPIRED / REFUNDED (terminal): administrative override only.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from swapengine.models import LogType, SwapOrder, SwapStatus

log = logging.getLogger("swapengine")


# Automatic transitions. Anything else needs override().
VALID_TRANSITIONS: Dict[SwapStatus, List[SwapStatus]] = {
    SwapStatus.AWAITING_DEPOSIT: [SwapStatus.CONFIRMING],
    SwapStatus.CONFIRMING: [SwapStatus.EXCHANGING],
    SwapStatus.EXCHANGING: [SwapStatus.SENDING],
    SwapStatus.SENDING: [SwapStatus.COMPLETED],
    # Terminal states - no automatic transitions
    SwapStatus.COMPLETED: [],
    SwapStatus.EXPIRED: [],
    SwapStatus.REFUNDED: [],
}

LINEAR_PATH: List[SwapStatus] = [
    SwapStatus.AWAITING_DEPOSIT,
    SwapStatus.CONFIRMING,
    SwapStatus.EXCHANGING,
    SwapStatus.SENDING,
    SwapStatus.COMPLETED,
]


def parse_status(raw: Any) -> Optional[SwapStatus]:
    """Map a raw value (enum or string) to a SwapStatus, or None if unknown."""
    if isinstance(raw, SwapStatus):
        return raw
    if isinstance(raw, str):
        try:
            return SwapStatus(raw.strip().upper())
        except ValueError:
            return None
    return None


def is_valid_transition(from_status: SwapStatus, to_status: SwapStatus) -> bool:
    return to_status in VALID_TRANSITIONS.get(from_status, [])


def next_status(status: SwapStatus) -> Optional[SwapStatus]:
    """The single automatic successor of a status, None for terminal states."""
    targets = VALID_TRANSITIONS.get(status, [])
    return targets[0] if targets else None


@dataclass(frozen=True)
class TransitionResult:
    applied: bool
    from_status: SwapStatus
    to_status: SwapStatus
    reason: Optional[str] = None


class SwapStateMachine:
    """
    Applies status changes to SwapOrder records.

    The machine does not own the orders; callers pass in the record they
    hold (normally a snapshot from the order store) and write it back.

    Thread-safety: callers serialize per order id.
    """

    def __init__(
        self,
        log_event: Optional[Callable[..., None]] = None,
        on_state_change: Optional[Callable[[SwapOrder, SwapStatus, SwapStatus], None]] = None,
    ) -> None:
        self._log_event = log_event or self._default_log
        self._on_state_change = on_state_change
        self._stats = {
            "transitions": 0,
            "overrides": 0,
            "invalid_transitions_blocked": 0,
        }

    def _default_log(self, event: str, **kwargs) -> None:
        log.info(json.dumps({"event": event, **kwargs}))

    def transition(
        self,
        order: SwapOrder,
        to_status: SwapStatus,
        message: str,
        log_type: LogType = LogType.INFO,
    ) -> TransitionResult:
        """
        Move an order one step along the linear path.

        Returns a result with applied=False (and the order untouched) when the
        step is not the order's single valid successor.
        """
        from_status = order.status
        if not is_valid_transition(from_status, to_status):
            self._stats["invalid_transitions_blocked"] += 1
            self._log_event(
                "order_state_invalid_transition",
                order_id=order.id,
                from_state=from_status.value,
                to_state=to_status.value,
            )
            return TransitionResult(False, from_status, to_status, reason="invalid_transition")

        order.status = to_status
        order.append_log(message, log_type)
        self._stats["transitions"] += 1
        self._log_event(
            "order_state_transition",
            order_id=order.id,
            from_state=from_status.value,
            to_state=to_status.value,
        )
        self._fire(order, from_status, to_status)
        return TransitionResult(True, from_status, to_status)

    def override(self, order: SwapOrder, to_status: SwapStatus, actor: str = "admin") -> TransitionResult:
        """
        Administrative override: set any status, bypassing the linear path.

        Always appends a NETWORK-tagged audit entry, even when the status is
        unchanged, so the operator action is visible in the order log.
        """
        from_status = order.status
        order.status = to_status
        order.append_log(
            f"Administrative override by {actor}: {from_status.value} -> {to_status.value}",
            LogType.NETWORK,
        )
        self._stats["overrides"] += 1
        self._log_event(
            "order_status_override",
            order_id=order.id,
            from_state=from_status.value,
            to_state=to_status.value,
            actor=actor,
        )
        self._fire(order, from_status, to_status)
        return TransitionResult(True, from_status, to_status, reason="override")

    def _fire(self, order: SwapOrder, from_status: SwapStatus, to_status: SwapStatus) -> None:
        if not self._on_state_change or from_status == to_status:
            return
        try:
            self._on_state_change(order, from_status, to_status)
        except Exception as e:
            self._log_event("order_state_callback_error", error=str(e), order_id=order.id)

    def get_stats(self) -> Dict[str, Any]:
        return dict(self._stats)
