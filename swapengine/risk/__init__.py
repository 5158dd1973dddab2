"""
Risk controls package.

Currently holds the circuit breaker guarding settlement partner calls.
"""

from swapengine.risk.circuit_breaker import CircuitBreaker, CircuitBreakerConfig

__all__ = [
    "CircuitBreaker",
    "CircuitBreakerConfig",
]
