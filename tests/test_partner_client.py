"""
Tests for the settlement partner HTTP client.
"""

import asyncio
import json
from decimal import Decimal

import httpx
import pytest

from swapengine.config.liquidity import LiquidityConfig, LiquidityMode, LiquiditySettings
from swapengine.errors import PartnerError
from swapengine.infra.partner_client import PartnerClient


def make_client(handler, api_key="secret-key", timeout=2.0):
    settings = LiquiditySettings(LiquidityConfig(
        mode=LiquidityMode.PARTNER,
        partner_api_url="https://partner.test/v2",
        partner_api_key=api_key,
    ))
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return PartnerClient(settings, timeout=timeout, client=http), settings


class TestEstimate:
    @pytest.mark.asyncio
    async def test_success(self):
        seen = {}

        def handler(request):
            seen["url"] = request.url
            seen["key"] = request.headers.get("x-changenow-api-key")
            return httpx.Response(200, json={"toAmount": 18.25, "fromAmount": 1})

        client, _ = make_client(handler)
        amount = await client.estimate("BTC", "ETH", Decimal("1"))

        assert amount == Decimal("18.25")
        assert seen["url"].path == "/v2/exchange/estimated-amount"
        assert seen["url"].params["fromCurrency"] == "btc"
        assert seen["url"].params["toCurrency"] == "eth"
        assert seen["url"].params["fromAmount"] == "1"
        assert seen["key"] == "secret-key"

    @pytest.mark.asyncio
    async def test_missing_amount(self):
        client, _ = make_client(lambda request: httpx.Response(200, json={"error": "pair_is_inactive"}))
        with pytest.raises(PartnerError, match="toAmount"):
            await client.estimate("BTC", "ETH", Decimal("1"))

    @pytest.mark.asyncio
    async def test_http_error(self):
        client, _ = make_client(lambda request: httpx.Response(503, json={"error": "maintenance"}))
        with pytest.raises(PartnerError) as exc_info:
            await client.estimate("BTC", "ETH", Decimal("1"))
        assert exc_info.value.status_code == 503
        assert exc_info.value.detail == "HTTP 503"

    @pytest.mark.asyncio
    async def test_no_api_key(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, json={"toAmount": 1})

        client, _ = make_client(handler, api_key=None)
        with pytest.raises(PartnerError, match="API key"):
            await client.estimate("BTC", "ETH", Decimal("1"))
        assert calls == []

    @pytest.mark.asyncio
    async def test_timeout(self):
        async def handler(request):
            await asyncio.sleep(5)
            return httpx.Response(200, json={"toAmount": 1})

        client, _ = make_client(handler, timeout=0.05)
        with pytest.raises(PartnerError, match="timed out"):
            await client.estimate("BTC", "ETH", Decimal("1"))


class TestCreateExchange:
    @pytest.mark.asyncio
    async def test_success(self):
        seen = {}

        def handler(request):
            seen["method"] = request.method
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"id": "cn42", "payinAddress": "bc1qpayin", "toAmount": "18.2"})

        client, _ = make_client(handler)
        exchange = await client.create_exchange("BTC", "ETH", "1", "0xdest")

        assert seen["method"] == "POST"
        assert seen["path"] == "/v2/exchange"
        assert seen["body"]["fromCurrency"] == "btc"
        assert seen["body"]["address"] == "0xdest"
        assert exchange.id == "cn42"
        assert exchange.payin_address == "bc1qpayin"
        assert exchange.to_amount == Decimal("18.2")

    @pytest.mark.asyncio
    async def test_incomplete_payload(self):
        client, _ = make_client(lambda request: httpx.Response(200, json={"id": "cn42"}))
        with pytest.raises(PartnerError, match="payinAddress"):
            await client.create_exchange("BTC", "ETH", "1", "0xdest")

    @pytest.mark.asyncio
    async def test_follows_config_updates(self):
        hosts = []

        def handler(request):
            hosts.append(request.url.host)
            return httpx.Response(200, json={"id": "x1", "payinAddress": "addr"})

        client, settings = make_client(handler)
        await client.create_exchange("BTC", "ETH", "1", "0xdest")
        await settings.update({"partnerApiUrl": "https://backup-partner.test/v2", "partnerName": "BACKUP"})
        await client.create_exchange("BTC", "ETH", "1", "0xdest")

        assert hosts == ["partner.test", "backup-partner.test"]
        assert client.name == "BACKUP"
