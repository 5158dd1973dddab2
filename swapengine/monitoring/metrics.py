"""
Prometheus metrics for the swap engine.

Organized into: orders, quoting/pricing, partner, observer.
"""

from typing import Optional

from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, Counter, Gauge, Histogram, generate_latest


class SwapMetrics:
    """All engine metrics on a private registry (one per engine instance)."""

    content_type = CONTENT_TYPE_LATEST

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        reg = registry or CollectorRegistry()

        # === Order Metrics ===
        self.orders_created = Counter(
            'swap_orders_created_total',
            'Orders created',
            labelnames=['from_symbol', 'to_symbol', 'provider'],
            registry=reg
        )
        self.status_transitions = Counter(
            'swap_status_transitions_total',
            'Automatic order status transitions',
            labelnames=['from_status', 'to_status'],
            registry=reg
        )
        self.admin_overrides = Counter(
            'swap_admin_overrides_total',
            'Administrative status overrides',
            labelnames=['status'],
            registry=reg
        )
        self.active_orders = Gauge(
            'swap_active_orders',
            'Orders in a non-terminal status',
            registry=reg
        )
        self.orders_pruned = Counter(
            'swap_orders_pruned_total',
            'Terminal orders removed by the retention policy',
            registry=reg
        )

        # === Pricing Metrics ===
        self.quotes_served = Counter(
            'swap_quotes_served_total',
            'Quotes returned to callers',
            labelnames=['provider', 'stale'],
            registry=reg
        )
        self.price_refreshes = Counter(
            'swap_price_refresh_total',
            'Price cache refresh attempts',
            labelnames=['result'],
            registry=reg
        )
        self.price_cache_age_sec = Gauge(
            'swap_price_cache_age_sec',
            'Seconds since the last successful price refresh',
            registry=reg
        )

        # === Partner Metrics ===
        self.partner_calls = Counter(
            'swap_partner_calls_total',
            'Settlement partner calls',
            labelnames=['operation', 'result'],
            registry=reg
        )
        self.partner_fallbacks = Counter(
            'swap_partner_fallbacks_total',
            'Partner failures answered from internal liquidity',
            labelnames=['operation'],
            registry=reg
        )

        # === Observer Metrics ===
        self.observer_tick_ms = Histogram(
            'swap_observer_tick_ms',
            'Lifecycle observer tick duration (milliseconds)',
            buckets=[1, 5, 10, 50, 100, 500, 1000, 5000],
            registry=reg
        )
        self.observer_ticks_skipped = Counter(
            'swap_observer_ticks_skipped_total',
            'Ticks dropped because the previous tick was still running',
            registry=reg
        )
        self.observer_order_errors = Counter(
            'swap_observer_order_errors_total',
            'Per-order failures isolated during a tick',
            registry=reg
        )

        self.registry = reg

    def render(self) -> bytes:
        return generate_latest(self.registry)
