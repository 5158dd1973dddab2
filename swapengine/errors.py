"""
Exception hierarchy for the swap engine.

External-dependency errors (PriceFeedError, PartnerError) are raised by the
HTTP clients and caught at the aggregator / order manager boundary, where a
degraded answer is produced instead. Not-found and validation errors travel
up to the API layer, which maps them to 404 / 400.
"""

from __future__ import annotations

from typing import Optional


class SwapEngineError(Exception):
    """Base class for all swap engine errors."""


class ValidationError(SwapEngineError):
    """Request is missing fields or carries malformed values."""


class OrderNotFoundError(SwapEngineError):
    def __init__(self, order_id: str) -> None:
        super().__init__(f"order not found: {order_id}")
        self.order_id = order_id


class InvalidStatusError(SwapEngineError):
    def __init__(self, status: object) -> None:
        super().__init__(f"invalid order status: {status!r}")
        self.status = status


class OrderIntegrityError(SwapEngineError):
    """A write would break an order invariant (confirmations, log, terminal state)."""

    def __init__(self, order_id: str, reason: str) -> None:
        super().__init__(f"order {order_id}: {reason}")
        self.order_id = order_id
        self.reason = reason


class PriceFeedError(SwapEngineError):
    """External price source failed or timed out."""


class PriceFeedRateLimited(PriceFeedError):
    def __init__(self, retry_after: Optional[float] = None) -> None:
        super().__init__("price source rate limited")
        self.retry_after = retry_after


class PartnerError(SwapEngineError):
    """Settlement partner call failed (transport, HTTP status or payload)."""

    def __init__(self, operation: str, detail: str, status_code: Optional[int] = None) -> None:
        super().__init__(f"partner {operation} failed: {detail}")
        self.operation = operation
        self.detail = detail
        self.status_code = status_code
