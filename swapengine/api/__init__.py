"""
HTTP surface: public swap endpoints, admin console endpoints and /metrics.
"""

from swapengine.api.server import SwapAPI, create_app, json_response

__all__ = ["SwapAPI", "create_app", "json_response"]
