"""
Market data package.

Price cache, external price feed, and the liquidity aggregator that turns
them into quotes.
"""

from swapengine.market_data.liquidity_aggregator import (
    DEFAULT_PROVIDERS,
    LiquidityAggregator,
    LiquidityProvider,
    RateRefresher,
)
from swapengine.market_data.price_feed import PriceBatch, PriceFeed
from swapengine.market_data.rate_cache import PriceEntry, RateCache

__all__ = [
    "DEFAULT_PROVIDERS",
    "LiquidityAggregator",
    "LiquidityProvider",
    "RateRefresher",
    "PriceBatch",
    "PriceFeed",
    "PriceEntry",
    "RateCache",
]
