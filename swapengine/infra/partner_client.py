"""
Minimal async HTTP client for the external settlement partner (ChangeNOW v2
style exchange API).

Endpoint, partner name and API key are read from LiquiditySettings on every
call so admin updates take effect without rebuilding the client.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional

import httpx

from swapengine.config.liquidity import LiquiditySettings
from swapengine.errors import PartnerError


@dataclass(frozen=True)
class PartnerExchange:
    id: str
    payin_address: str
    to_amount: Optional[Decimal]


class PartnerClient:
    def __init__(
        self,
        settings: LiquiditySettings,
        timeout: float = 8.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.settings = settings
        self.timeout = timeout
        # If a shared client is passed in, we won't close it in close(); otherwise we own the client.
        if client is not None:
            self.client = client
            self._owns_client = False
        else:
            self.client = httpx.AsyncClient(http2=True, timeout=timeout)
            self._owns_client = True

    @property
    def name(self) -> str:
        return self.settings.current.partner_name

    async def close(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    async def estimate(self, from_symbol: str, to_symbol: str, from_amount: Decimal) -> Decimal:
        """Estimated payout for from_amount; raises PartnerError on any failure."""
        data = await self._request(
            "estimate",
            "GET",
            "/exchange/estimated-amount",
            params={
                "fromCurrency": from_symbol.lower(),
                "toCurrency": to_symbol.lower(),
                "fromAmount": str(from_amount),
                "flow": "standard",
            },
        )
        amount = _decimal(data.get("toAmount"))
        if amount is None or amount <= 0:
            raise PartnerError("estimate", "response carries no usable toAmount")
        return amount

    async def create_exchange(
        self,
        from_symbol: str,
        to_symbol: str,
        from_amount: str,
        address: str,
    ) -> PartnerExchange:
        data = await self._request(
            "create_exchange",
            "POST",
            "/exchange",
            json={
                "fromCurrency": from_symbol.lower(),
                "toCurrency": to_symbol.lower(),
                "fromAmount": from_amount,
                "address": address,
                "flow": "standard",
            },
        )
        exchange_id = data.get("id")
        payin = data.get("payinAddress")
        if not exchange_id or not payin:
            raise PartnerError("create_exchange", "response missing id or payinAddress")
        return PartnerExchange(id=str(exchange_id), payin_address=str(payin), to_amount=_decimal(data.get("toAmount")))

    async def _request(self, operation: str, method: str, path: str, **kwargs: Any) -> Dict[str, Any]:
        cfg = self.settings.current
        if not cfg.partner_api_key:
            raise PartnerError(operation, "partner API key not configured")
        url = cfg.partner_api_url.rstrip("/") + path
        headers = {"x-changenow-api-key": cfg.partner_api_key}
        try:
            async with asyncio.timeout(self.timeout):
                resp = await self.client.request(method, url, headers=headers, **kwargs)
            resp.raise_for_status()
            data = resp.json()
        except TimeoutError:
            raise PartnerError(operation, f"timed out after {self.timeout}s") from None
        except httpx.HTTPStatusError as exc:
            raise PartnerError(operation, f"HTTP {exc.response.status_code}", exc.response.status_code) from exc
        except httpx.HTTPError as exc:
            raise PartnerError(operation, f"{type(exc).__name__}: {exc}") from exc
        except ValueError as exc:
            raise PartnerError(operation, "invalid JSON payload") from exc
        if not isinstance(data, dict):
            raise PartnerError(operation, "unexpected payload shape")
        return data


def _decimal(raw: Any) -> Optional[Decimal]:
    if raw is None:
        return None
    try:
        return Decimal(str(raw))
    except (InvalidOperation, ValueError):
        return None
