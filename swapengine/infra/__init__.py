"""
Infrastructure package.

This package contains logging configuration and the settlement partner
HTTP client.
"""

from swapengine.infra.logging_cfg import build_logger, log_event
from swapengine.infra.partner_client import PartnerClient, PartnerExchange

__all__ = [
    "build_logger",
    "log_event",
    "PartnerClient",
    "PartnerExchange",
]
