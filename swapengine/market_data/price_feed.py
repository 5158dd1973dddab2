"""
Async client for the external price source (CoinGecko simple/price API).
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Dict, Iterable, Optional

import httpx

from swapengine.errors import PriceFeedError, PriceFeedRateLimited

COINGECKO_IDS: Dict[str, str] = {
    "BTC": "bitcoin",
    "ETH": "ethereum",
    "SOL": "solana",
    "USDT": "tether",
    "TRX": "tron",
    "LTC": "litecoin",
    "XMR": "monero",
    "USDC": "usd-coin",
    "BNB": "binancecoin",
    "DOGE": "dogecoin",
}


@dataclass(frozen=True)
class PriceBatch:
    prices: Dict[str, float]
    changes: Dict[str, float] = field(default_factory=dict)


class PriceFeed:
    def __init__(
        self,
        base_url: str = "https://api.coingecko.com/api/v3",
        timeout: float = 8.0,
        client: Optional[httpx.AsyncClient] = None,
        ids: Optional[Dict[str, str]] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.ids = dict(ids or COINGECKO_IDS)
        # If a shared client is passed in, we won't close it in close(); otherwise we own the client.
        if client is not None:
            self.client = client
            self._owns_client = False
        else:
            self.client = httpx.AsyncClient(base_url=self.base_url, http2=True, timeout=timeout)
            self._owns_client = True

    async def close(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    async def fetch(self, symbols: Iterable[str]) -> PriceBatch:
        """
        Fetch USD prices for the given tickers.

        Raises PriceFeedRateLimited on HTTP 429 and PriceFeedError on any
        other failure, including the bounded timeout expiring.
        """
        by_id = {self.ids[s.upper()]: s.upper() for s in symbols if s.upper() in self.ids}
        if not by_id:
            return PriceBatch(prices={})
        params = {
            "ids": ",".join(sorted(by_id)),
            "vs_currencies": "usd",
            "include_24hr_change": "true",
        }
        try:
            async with asyncio.timeout(self.timeout):
                resp = await self.client.get(f"{self.base_url}/simple/price", params=params)
        except TimeoutError:
            raise PriceFeedError(f"price fetch timed out after {self.timeout}s") from None
        except httpx.HTTPError as exc:
            raise PriceFeedError(f"{type(exc).__name__}: {exc}") from exc

        if resp.status_code == 429:
            retry_after = resp.headers.get("retry-after")
            try:
                retry = float(retry_after) if retry_after else None
            except ValueError:
                retry = None
            raise PriceFeedRateLimited(retry)
        if resp.status_code >= 400:
            raise PriceFeedError(f"price source returned HTTP {resp.status_code}")
        try:
            data = resp.json()
        except ValueError as exc:
            raise PriceFeedError("price source returned invalid JSON") from exc
        if not isinstance(data, dict):
            raise PriceFeedError("unexpected price payload shape")

        prices: Dict[str, float] = {}
        changes: Dict[str, float] = {}
        for cg_id, sym in by_id.items():
            row = data.get(cg_id)
            if not isinstance(row, dict):
                continue
            usd = row.get("usd")
            if isinstance(usd, (int, float)) and usd > 0:
                prices[sym] = float(usd)
            change = row.get("usd_24h_change")
            if isinstance(change, (int, float)):
                changes[sym] = float(change)
        return PriceBatch(prices=prices, changes=changes)
