"""
CircuitBreaker: stops calling the settlement partner after repeated failures.

While the circuit is open every partner call is skipped and the caller takes
its internal fallback path straight away, instead of waiting on a timeout
for each order. The circuit closes again after a cooldown that grows with
each consecutive trip.
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

log = logging.getLogger("swapengine")


@dataclass
class CircuitBreakerConfig:
    error_threshold: int = 3  # Consecutive failures before the circuit opens
    cooldown_sec: float = 30.0  # Base cooldown before calls are allowed again
    backoff_multiplier: float = 2.0  # Cooldown multiplier on repeated trips
    max_backoff: float = 16.0


class CircuitBreaker:
    """
    Single-threaded asyncio usage only (no internal locks).
    """

    def __init__(
        self,
        name: str,
        config: Optional[CircuitBreakerConfig] = None,
        clock: Callable[[], float] = time.monotonic,
        log_event: Optional[Callable[..., None]] = None,
    ) -> None:
        self.name = name
        self.config = config or CircuitBreakerConfig()
        self._clock = clock
        self.error_streak: int = 0
        self._open: bool = False
        self._open_until: float = 0.0
        self._trip_count: int = 0
        self._log_event = log_event or self._default_log

    def _default_log(self, event: str, **kwargs: Any) -> None:
        log.info(json.dumps({"event": event, "breaker": self.name, **kwargs}))

    @property
    def is_open(self) -> bool:
        """True while calls should be skipped. Closes itself after cooldown."""
        if self._open and self._clock() >= self._open_until:
            self._close()
        return self._open

    def allow(self) -> bool:
        return not self.is_open

    @property
    def cooldown_remaining(self) -> float:
        if not self._open:
            return 0.0
        return max(0.0, self._open_until - self._clock())

    def record_failure(self, operation: str, error: Exception) -> bool:
        """Record a failed call. Returns True if this failure opened the circuit."""
        self.error_streak += 1
        self._log_event("breaker_failure", operation=operation, err=str(error), streak=self.error_streak)
        if self.error_streak >= self.config.error_threshold and not self._open:
            return self._trip(operation)
        return False

    def record_success(self) -> None:
        if self.error_streak > 0:
            self._log_event("breaker_streak_reset", streak=self.error_streak)
        self.error_streak = 0
        # A successful call means the partner is healthy again; forget old trips.
        self._trip_count = 0

    def _trip(self, operation: str) -> bool:
        self._open = True
        self._trip_count += 1
        backoff = min(self.config.backoff_multiplier ** (self._trip_count - 1), self.config.max_backoff)
        cooldown = self.config.cooldown_sec * backoff
        self._open_until = self._clock() + cooldown
        self._log_event(
            "breaker_open",
            operation=operation,
            streak=self.error_streak,
            trip_count=self._trip_count,
            cooldown_sec=cooldown,
        )
        return True

    def _close(self) -> None:
        self._open = False
        self.error_streak = 0
        self._log_event("breaker_closed", trip_count=self._trip_count)

    def reset(self) -> None:
        """Close immediately and forget history (e.g. after the partner config changed)."""
        self._open = False
        self._open_until = 0.0
        self.error_streak = 0
        self._trip_count = 0

    def get_state(self) -> dict:
        return {
            "open": self._open,
            "error_streak": self.error_streak,
            "trip_count": self._trip_count,
            "cooldown_remaining": self.cooldown_remaining,
        }
