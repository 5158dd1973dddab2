"""
LiquidityAggregator: best quoted rate for an asset pair.

Architecture:
    RateRefresher keeps the RateCache warm from the external PriceFeed on a
    fixed interval. LiquidityAggregator turns cached USD prices into a
    pair rate and applies each synthetic provider's spread, returning the
    provider that costs the user least. In PARTNER liquidity mode the
    settlement partner's own estimate is tried first.

Failure semantics:
    Price source and partner errors are logged and absorbed here; get_rate()
    always answers, falling back to cached (possibly static) prices.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence

from swapengine.config.liquidity import LiquiditySettings
from swapengine.errors import PartnerError, PriceFeedError, PriceFeedRateLimited
from swapengine.market_data.price_feed import PriceFeed
from swapengine.market_data.rate_cache import RateCache
from swapengine.models import Quote
from swapengine.utils import now_ms

log = logging.getLogger("swapengine")


@dataclass(frozen=True)
class LiquidityProvider:
    name: str
    spread: float  # fractional, e.g. 0.002 = 0.2%


DEFAULT_PROVIDERS: Sequence[LiquidityProvider] = (
    LiquidityProvider("NEXUS_INTERNAL", 0.002),
    LiquidityProvider("UNISWAP_V3", 0.003),
    LiquidityProvider("1INCH_AGGREGATOR", 0.001),
)

# Price used for tickers the cache has never seen (parity).
UNKNOWN_TICKER_PRICE = 1.0


class RateRefresher:
    """
    Background loop refreshing the RateCache.

    start() is idempotent: one loop per instance for the life of the
    process (until stop()).
    """

    def __init__(
        self,
        cache: RateCache,
        feed: PriceFeed,
        interval_sec: float = 30.0,
        metrics=None,
        health=None,
    ) -> None:
        self.cache = cache
        self.feed = feed
        self.interval_sec = interval_sec
        self.metrics = metrics
        self.health = health
        self._task: Optional[asyncio.Task] = None
        self._consecutive_failures = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="rate-refresher")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        await asyncio.gather(self._task, return_exceptions=True)
        self._task = None

    async def refresh_once(self) -> bool:
        """One refresh attempt. Never raises; returns True on success."""
        started = time.monotonic()
        try:
            batch = await self.feed.fetch(self.cache.symbols())
        except PriceFeedRateLimited as exc:
            self._record_failure("rate_limited")
            log.warning(json.dumps({
                "event": "price_feed_rate_limited",
                "retry_after": exc.retry_after,
                "failures": self._consecutive_failures,
            }))
            return False
        except PriceFeedError as exc:
            self._record_failure("error")
            log.warning(json.dumps({
                "event": "price_refresh_failed",
                "err": str(exc),
                "failures": self._consecutive_failures,
            }))
            return False

        updated = self.cache.apply_refresh(batch.prices, batch.changes)
        if updated == 0:
            self._record_failure("empty")
            log.warning(json.dumps({"event": "price_refresh_failed", "err": "no usable prices in response"}))
            return False

        self._consecutive_failures = 0
        if self.metrics:
            self.metrics.price_refreshes.labels(result="ok").inc()
            self.metrics.price_cache_age_sec.set(0)
        if self.health:
            self.health.set_component_health("price_feed", True)
        log.debug(json.dumps({
            "event": "price_refresh_ok",
            "updated": updated,
            "ms": round((time.monotonic() - started) * 1000, 1),
        }))
        return True

    def _record_failure(self, result: str) -> None:
        self._consecutive_failures += 1
        if self.metrics:
            self.metrics.price_refreshes.labels(result=result).inc()
            age = self.cache.age_ms()
            if age is not None:
                self.metrics.price_cache_age_sec.set(age / 1000.0)
        if self.health:
            self.health.set_component_health(
                "price_feed", False, f"serving cached prices after {self._consecutive_failures} failed refreshes"
            )

    async def _run(self) -> None:
        # Callers warm the cache with refresh_once() before start().
        task = asyncio.current_task()
        while True:
            try:
                await asyncio.sleep(self.interval_sec)
                await self.refresh_once()
            except asyncio.CancelledError:
                break
            except Exception as exc:
                log.error(json.dumps({"event": "rate_refresher_error", "err": str(exc)}))
            if task is not None and task.cancelling():
                break


class LiquidityAggregator:
    def __init__(
        self,
        cache: RateCache,
        liquidity: Optional[LiquiditySettings] = None,
        partner=None,
        breaker=None,
        providers: Sequence[LiquidityProvider] = DEFAULT_PROVIDERS,
        quote_ttl_sec: int = 30,
        metrics=None,
    ) -> None:
        if not providers:
            raise ValueError("at least one liquidity provider is required")
        self.cache = cache
        self.liquidity = liquidity or LiquiditySettings()
        self.partner = partner
        self.breaker = breaker
        self.providers = list(providers)
        self.quote_ttl_ms = quote_ttl_sec * 1000
        self.metrics = metrics

    def base_rate(self, from_symbol: str, to_symbol: str) -> tuple[float, bool]:
        """
        price(from) / price(to) in USD, plus a staleness flag.

        Unknown tickers are priced at parity and flagged stale.
        """
        stale = False
        prices = []
        for sym in (from_symbol, to_symbol):
            entry = self.cache.get(sym)
            if entry is None:
                log.warning(json.dumps({"event": "unknown_ticker", "symbol": sym.upper()}))
                prices.append(UNKNOWN_TICKER_PRICE)
                stale = True
            else:
                prices.append(entry.price)
                stale = stale or entry.is_stale
        return prices[0] / prices[1], stale

    def best_provider(self, base: float) -> tuple[LiquidityProvider, float]:
        """Highest rate after spread; ties keep the earlier declared provider."""
        best = self.providers[0]
        best_rate = base * (1 - best.spread)
        for provider in self.providers[1:]:
            rate = base * (1 - provider.spread)
            if rate > best_rate:
                best, best_rate = provider, rate
        return best, best_rate

    async def get_rate(self, from_symbol: str, to_symbol: str, amount: Optional[Decimal] = None) -> Quote:
        """Never raises for upstream failures."""
        from_symbol = from_symbol.upper()
        to_symbol = to_symbol.upper()
        valid_until = now_ms() + self.quote_ttl_ms

        if amount is not None and self.liquidity.current.partner_enabled:
            partner_quote = await self._partner_rate(from_symbol, to_symbol, amount, valid_until)
            if partner_quote is not None:
                self._count(partner_quote)
                return partner_quote

        quote = self.internal_quote(from_symbol, to_symbol, valid_until)
        self._count(quote)
        return quote

    def internal_quote(self, from_symbol: str, to_symbol: str, valid_until: Optional[int] = None) -> Quote:
        """Best rate across internal providers, ignoring the settlement partner."""
        base, stale = self.base_rate(from_symbol.upper(), to_symbol.upper())
        provider, rate = self.best_provider(base)
        if valid_until is None:
            valid_until = now_ms() + self.quote_ttl_ms
        return Quote(rate=rate, provider=provider.name, is_stale=stale, valid_until=valid_until)

    async def _partner_rate(self, from_symbol: str, to_symbol: str, amount: Decimal,
                            valid_until: int) -> Optional[Quote]:
        if self.partner is None:
            return None
        if self.breaker is not None and not self.breaker.allow():
            self._fallback("estimate", "circuit_open")
            return None
        try:
            estimated = await self.partner.estimate(from_symbol, to_symbol, amount)
        except PartnerError as exc:
            if self.breaker is not None:
                self.breaker.record_failure("estimate", exc)
            if self.metrics:
                self.metrics.partner_calls.labels(operation="estimate", result="error").inc()
            self._fallback("estimate", str(exc))
            return None
        if self.breaker is not None:
            self.breaker.record_success()
        if self.metrics:
            self.metrics.partner_calls.labels(operation="estimate", result="ok").inc()
        rate = float(estimated / amount)
        return Quote(rate=rate, provider=self.liquidity.current.partner_name, is_stale=False, valid_until=valid_until)

    def _fallback(self, operation: str, reason: str) -> None:
        if self.metrics:
            self.metrics.partner_fallbacks.labels(operation=operation).inc()
        log.warning(json.dumps({"event": "partner_quote_fallback", "operation": operation, "reason": reason}))

    def _count(self, quote: Quote) -> None:
        if self.metrics:
            self.metrics.quotes_served.labels(provider=quote.provider, stale=str(quote.is_stale).lower()).inc()

    def price_usd(self, symbol: str) -> Optional[float]:
        return self.cache.price(symbol)

    def market_ticker(self) -> List[Dict[str, Any]]:
        return [
            {
                "symbol": entry.symbol,
                "price": entry.price,
                "change24h": entry.change_24h,
                "isStale": entry.is_stale,
            }
            for entry in self.cache.snapshot()
        ]
