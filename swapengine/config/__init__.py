"""
Configuration package.

This package contains environment configuration loading and the runtime
liquidity settings holder.
"""

from swapengine.config.config import Settings
from swapengine.config.liquidity import LiquidityConfig, LiquidityMode, LiquiditySettings

__all__ = [
    "Settings",
    "LiquidityConfig",
    "LiquidityMode",
    "LiquiditySettings",
]
