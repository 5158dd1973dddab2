"""
Application root: builds every service explicitly and owns their lifecycle.

Handlers receive the SwapEngine instance instead of reaching for
process-wide singletons, so tests can assemble an engine from fakes.
"""

from __future__ import annotations

import json
import logging
import random
from dataclasses import dataclass
from typing import Optional

import httpx

from swapengine.config.config import Settings
from swapengine.config.liquidity import LiquidityConfig, LiquiditySettings
from swapengine.execution.lifecycle_observer import LifecycleObserver, TransitionPolicy
from swapengine.execution.order_state_machine import SwapStateMachine
from swapengine.execution.order_store import OrderStore
from swapengine.infra.partner_client import PartnerClient
from swapengine.market_data.liquidity_aggregator import LiquidityAggregator, RateRefresher
from swapengine.market_data.price_feed import PriceFeed
from swapengine.market_data.rate_cache import RateCache
from swapengine.monitoring.health import HealthChecker
from swapengine.monitoring.metrics import SwapMetrics
from swapengine.order_manager import OrderManager
from swapengine.risk.circuit_breaker import CircuitBreaker, CircuitBreakerConfig

log = logging.getLogger("swapengine")


@dataclass
class SwapEngine:
    settings: Settings
    liquidity: LiquiditySettings
    metrics: SwapMetrics
    health: HealthChecker
    cache: RateCache
    aggregator: LiquidityAggregator
    refresher: RateRefresher
    manager: OrderManager
    observer: LifecycleObserver
    partner_breaker: CircuitBreaker
    http_client: Optional[httpx.AsyncClient] = None
    feed: Optional[PriceFeed] = None
    partner: Optional[PartnerClient] = None

    async def start(self) -> None:
        """Warm the price cache once, then start the background loops."""
        await self.refresher.refresh_once()
        self.refresher.start()
        self.observer.start()
        log.info(json.dumps({
            "event": "engine_started",
            "liquidity_mode": self.liquidity.current.mode.value,
            "observer_interval": self.observer.interval_sec,
            "price_refresh_interval": self.refresher.interval_sec,
        }))

    async def stop(self) -> None:
        await self.observer.stop()
        await self.refresher.stop()
        if self.feed is not None:
            await self.feed.close()
        if self.partner is not None:
            await self.partner.close()
        if self.http_client is not None:
            await self.http_client.aclose()
        log.info(json.dumps({"event": "engine_stopped"}))

    async def update_liquidity(self, changes: dict) -> LiquidityConfig:
        """Single write path for the liquidity config; resets the partner breaker."""
        cfg = await self.liquidity.update(changes)
        self.partner_breaker.reset()
        return cfg


def build_engine(
    settings: Settings,
    http_client: Optional[httpx.AsyncClient] = None,
    rng: Optional[random.Random] = None,
) -> SwapEngine:
    rng = rng or random.Random(settings.rng_seed)
    timeout = max(settings.price_timeout, settings.partner_timeout)
    client = http_client or httpx.AsyncClient(http2=True, timeout=timeout)

    metrics = SwapMetrics()
    health = HealthChecker()
    liquidity = LiquiditySettings(LiquidityConfig.from_settings(settings))
    breaker = CircuitBreaker(
        "partner",
        CircuitBreakerConfig(
            error_threshold=settings.partner_error_threshold,
            cooldown_sec=settings.partner_cooldown_sec,
        ),
    )
    partner = PartnerClient(liquidity, timeout=settings.partner_timeout, client=client)

    cache = RateCache()
    feed = PriceFeed(settings.price_api_url, timeout=settings.price_timeout, client=client)
    refresher = RateRefresher(cache, feed, settings.price_refresh_interval, metrics=metrics, health=health)
    aggregator = LiquidityAggregator(
        cache,
        liquidity=liquidity,
        partner=partner,
        breaker=breaker,
        quote_ttl_sec=settings.quote_ttl_sec,
        metrics=metrics,
    )
    manager = OrderManager(
        store=OrderStore(),
        liquidity=liquidity,
        partner=partner,
        breaker=breaker,
        state_machine=SwapStateMachine(),
        price_lookup=aggregator.price_usd,
        internal_quote=aggregator.internal_quote,
        metrics=metrics,
        rng=rng,
        retention_sec=settings.order_retention_sec,
    )
    observer = LifecycleObserver(
        manager,
        policy=TransitionPolicy.from_settings(settings, rng=rng),
        interval_sec=settings.observer_interval,
        metrics=metrics,
        health=health,
    )
    return SwapEngine(
        settings=settings,
        liquidity=liquidity,
        metrics=metrics,
        health=health,
        cache=cache,
        aggregator=aggregator,
        refresher=refresher,
        manager=manager,
        observer=observer,
        partner_breaker=breaker,
        http_client=client if http_client is None else None,
        feed=feed,
        partner=partner,
    )
