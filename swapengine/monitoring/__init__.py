"""
Monitoring and observability package.
"""

from swapengine.monitoring.health import HealthChecker, HealthStatus
from swapengine.monitoring.metrics import SwapMetrics

__all__ = [
    "HealthChecker",
    "HealthStatus",
    "SwapMetrics",
]
