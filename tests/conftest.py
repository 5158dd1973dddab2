"""
Pytest configuration and shared fixtures.
Adds the repo root to Python path so tests can import swapengine.
"""

import random
import sys
from pathlib import Path

import pytest

repo_root = Path(__file__).parent.parent
if str(repo_root) not in sys.path:
    sys.path.insert(0, str(repo_root))

from swapengine.config.config import Settings  # noqa: E402
from swapengine.models import OrderRequest, SwapOrder  # noqa: E402


class FixedRandom(random.Random):
    """random() always returns the same value; everything else stays random."""

    def __init__(self, value: float, seed: int = 1):
        super().__init__(seed)
        self.value = value

    def random(self):
        return self.value

    def getrandbits(self, k):
        # keeps choice()/randrange() on the bit generator instead of random()
        return super().getrandbits(k)


class ManualClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self, start_ms: int = 1_700_000_000_000):
        self.now = start_ms

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


def make_settings(**overrides) -> Settings:
    values = dict(
        host="127.0.0.1",
        port=3001,
        log_level="INFO",
        log_file=None,
        engine_version="v4.0.3-PROD",
        observer_interval=4.0,
        deposit_detect_prob=0.15,
        confirm_prob_pow=0.45,
        confirm_prob_fast=0.9,
        exchange_prob=0.6,
        send_prob=0.5,
        rng_seed=7,
        order_retention_sec=0,
        price_api_url="https://prices.test/api/v3",
        price_refresh_interval=30.0,
        price_timeout=2.0,
        quote_ttl_sec=30,
        liquidity_mode="INTERNAL",
        partner_name="CHANGENOW",
        partner_api_url="https://partner.test/v2",
        partner_api_key=None,
        partner_timeout=2.0,
        partner_error_threshold=3,
        partner_cooldown_sec=30.0,
    )
    values.update(overrides)
    return Settings(**values)


def make_order(order_id: str = "ORD00001", from_symbol: str = "BTC", required: int = 3, **kwargs) -> SwapOrder:
    values = dict(
        id=order_id,
        from_symbol=from_symbol,
        to_symbol="ETH",
        from_amount="0.5",
        to_amount="9.271428",
        destination_address="0xdest",
        deposit_address="bc1qdeposit",
        required_confirmations=required,
        rate=18.54,
        provider="1INCH_AGGREGATOR",
        created_at=1_700_000_000_000,
    )
    values.update(kwargs)
    order = SwapOrder(**values)
    order.append_log("Order created and pending deposit.", ts=order.created_at)
    return order


def make_request(from_symbol: str = "BTC", to_symbol: str = "ETH", from_amount: str = "0.5") -> OrderRequest:
    return OrderRequest(
        from_symbol=from_symbol,
        to_symbol=to_symbol,
        from_amount=from_amount,
        to_amount="9.271428",
        destination_address="0xdest",
        rate=18.54,
        provider="1INCH_AGGREGATOR",
    )


@pytest.fixture
def clock():
    return ManualClock()
