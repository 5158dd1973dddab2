"""
RateCache: last-known-good USD prices keyed by uppercase ticker.

Seeded from a static table so a quote can always be produced, even before
the first successful refresh. Entries are only ever overwritten by a
successful refresh; a failed refresh leaves everything as it was.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional

from swapengine.utils import now_ms

STATIC_PRICES_USD: Dict[str, float] = {
    "BTC": 65000.0,
    "ETH": 3500.0,
    "SOL": 140.0,
    "USDT": 1.0,
    "TRX": 0.12,
    "LTC": 80.0,
    "XMR": 162.0,
}


@dataclass(frozen=True)
class PriceEntry:
    symbol: str
    price: float
    refreshed_at_ms: Optional[int] = None  # None until a live refresh succeeded
    change_24h: Optional[float] = None

    @property
    def is_stale(self) -> bool:
        return self.refreshed_at_ms is None


class RateCache:
    __slots__ = ("_entries", "_last_refresh_ms")

    def __init__(self, seed: Optional[Mapping[str, float]] = None) -> None:
        table = STATIC_PRICES_USD if seed is None else seed
        self._entries: Dict[str, PriceEntry] = {
            sym.upper(): PriceEntry(symbol=sym.upper(), price=float(px)) for sym, px in table.items()
        }
        self._last_refresh_ms: Optional[int] = None

    def symbols(self) -> List[str]:
        return list(self._entries.keys())

    def get(self, symbol: str) -> Optional[PriceEntry]:
        return self._entries.get(symbol.upper())

    def price(self, symbol: str) -> Optional[float]:
        entry = self.get(symbol)
        return entry.price if entry else None

    def apply_refresh(self, prices: Mapping[str, float], changes: Optional[Mapping[str, float]] = None,
                      ts_ms: Optional[int] = None) -> int:
        """
        Overwrite entries with freshly fetched prices.

        Non-positive prices are ignored so a bad upstream value never
        replaces a good cached one. Returns the number of entries updated.
        """
        ts = ts_ms if ts_ms is not None else now_ms()
        changes = changes or {}
        updated = 0
        for sym, px in prices.items():
            if px is None or px <= 0:
                continue
            key = sym.upper()
            self._entries[key] = PriceEntry(
                symbol=key,
                price=float(px),
                refreshed_at_ms=ts,
                change_24h=changes.get(sym, changes.get(key)),
            )
            updated += 1
        if updated:
            self._last_refresh_ms = ts
        return updated

    def last_refresh_ms(self) -> Optional[int]:
        return self._last_refresh_ms

    def age_ms(self) -> Optional[int]:
        if self._last_refresh_ms is None:
            return None
        return now_ms() - self._last_refresh_ms

    def snapshot(self) -> List[PriceEntry]:
        return list(self._entries.values())
