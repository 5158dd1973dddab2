"""
Centralized component health for the /health endpoint.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Dict, Optional


@dataclass
class HealthStatus:
    healthy: bool = True
    last_heartbeat_ms: int = 0
    components: Dict[str, bool] = field(default_factory=dict)
    details: Dict[str, Any] = field(default_factory=dict)


class HealthChecker:
    """
    Tracks component health (price feed, observer, partner).

    /health always answers UP while the process serves requests; a degraded
    component only shows up here (healthy=False plus a detail string),
    since the engine keeps serving cached prices and internal liquidity.
    """

    def __init__(self) -> None:
        self._components: Dict[str, bool] = {}
        self._details: Dict[str, Any] = {}
        self._last_heartbeat = int(time.time() * 1000)

    def set_component_health(self, name: str, healthy: bool, detail: Optional[str] = None) -> None:
        self._components[name] = healthy
        if detail:
            self._details[name] = detail
        else:
            self._details.pop(name, None)
        self._last_heartbeat = int(time.time() * 1000)

    def is_healthy(self) -> bool:
        """True when every reported component is healthy."""
        if not self._components:
            return True
        return all(self._components.values())

    def get_status(self) -> HealthStatus:
        return HealthStatus(
            healthy=self.is_healthy(),
            last_heartbeat_ms=self._last_heartbeat,
            components=dict(self._components),
            details=dict(self._details),
        )

    def to_dict(self) -> Dict[str, Any]:
        status = self.get_status()
        return {
            "healthy": status.healthy,
            "lastHeartbeatMs": status.last_heartbeat_ms,
            "components": status.components,
            "details": status.details,
        }
