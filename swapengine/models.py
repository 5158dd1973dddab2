"""
Domain model: swap orders, their audit log, and quotes.

Amounts are kept as decimal strings end to end so no precision is lost to
floats. Serialization uses the camelCase field names the web client expects.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from swapengine.utils import now_ms


class SwapStatus(str, Enum):
    """
    Order settlement status.

    AWAITING_DEPOSIT -> CONFIRMING -> EXCHANGING -> SENDING -> COMPLETED

    EXPIRED and REFUNDED are only reachable through an administrative
    override.
    """
    AWAITING_DEPOSIT = "AWAITING_DEPOSIT"
    CONFIRMING = "CONFIRMING"
    EXCHANGING = "EXCHANGING"
    SENDING = "SENDING"
    COMPLETED = "COMPLETED"
    EXPIRED = "EXPIRED"
    REFUNDED = "REFUNDED"


TERMINAL_STATUSES = frozenset({SwapStatus.COMPLETED, SwapStatus.EXPIRED, SwapStatus.REFUNDED})


class LogType(str, Enum):
    INFO = "INFO"
    SUCCESS = "SUCCESS"
    NETWORK = "NETWORK"
    ERROR = "ERROR"


@dataclass(frozen=True)
class ExecutionLog:
    """One audit trail entry. Entries are never edited once appended."""
    timestamp: int
    message: str
    type: LogType = LogType.INFO

    def to_dict(self) -> Dict[str, Any]:
        return {"timestamp": self.timestamp, "message": self.message, "type": self.type.value}


@dataclass
class SwapOrder:
    id: str
    from_symbol: str
    to_symbol: str
    from_amount: str
    to_amount: str
    destination_address: str
    deposit_address: str
    required_confirmations: int
    status: SwapStatus = SwapStatus.AWAITING_DEPOSIT
    confirmations: int = 0
    rate: float = 0.0
    provider: str = ""
    provider_id: Optional[str] = None
    created_at: int = 0
    logs: List[ExecutionLog] = field(default_factory=list)
    tx_hash_in: Optional[str] = None
    tx_hash_out: Optional[str] = None

    def __post_init__(self) -> None:
        if self.created_at == 0:
            self.created_at = now_ms()

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def append_log(self, message: str, type: LogType = LogType.INFO, ts: Optional[int] = None) -> ExecutionLog:
        entry = ExecutionLog(timestamp=ts if ts is not None else now_ms(), message=message, type=type)
        self.logs.append(entry)
        return entry

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "id": self.id,
            "fromSymbol": self.from_symbol,
            "toSymbol": self.to_symbol,
            "fromAmount": self.from_amount,
            "toAmount": self.to_amount,
            "destinationAddress": self.destination_address,
            "depositAddress": self.deposit_address,
            "status": self.status.value,
            "confirmations": self.confirmations,
            "requiredConfirmations": self.required_confirmations,
            "rate": self.rate,
            "provider": self.provider,
            "createdAt": self.created_at,
            "logs": [entry.to_dict() for entry in self.logs],
        }
        if self.provider_id is not None:
            payload["providerId"] = self.provider_id
        if self.tx_hash_in is not None:
            payload["txHashIn"] = self.tx_hash_in
        if self.tx_hash_out is not None:
            payload["txHashOut"] = self.tx_hash_out
        return payload


@dataclass(frozen=True)
class OrderRequest:
    """Validated swap request handed from the API layer to the order manager."""
    from_symbol: str
    to_symbol: str
    from_amount: str
    to_amount: str
    destination_address: str
    rate: float
    provider: str


@dataclass(frozen=True)
class Quote:
    rate: float
    provider: str
    is_stale: bool
    valid_until: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rate": self.rate,
            "provider": self.provider,
            "isStale": self.is_stale,
            "validUntil": self.valid_until,
        }


@dataclass(frozen=True)
class OrderSummary:
    total: int
    active_count: int
    new_last_24h: int
    pending_value_estimate: str
    recent: List[SwapOrder] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "activeCount": self.active_count,
            "newLast24h": self.new_last_24h,
            "pendingValueEstimate": self.pending_value_estimate,
            "recent": [o.to_dict() for o in self.recent],
        }
