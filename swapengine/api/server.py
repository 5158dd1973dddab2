"""
HTTP API for the swap front-end and the admin console.

Public:
    GET  /api/health
    GET  /api/quote?from=&to=&amount=
    POST /api/orders
    GET  /api/orders/{order_id}
    GET  /api/market/ticker

Admin:
    GET  /api/admin/orders
    GET  /api/admin/summary
    POST /api/admin/orders/{order_id}/status
    GET  /api/admin/liquidity
    PUT  /api/admin/liquidity

Observability:
    GET  /metrics
"""

from __future__ import annotations

import json
import logging
from decimal import Decimal
from typing import Any, Dict

from aiohttp import web

from swapengine.errors import (
    InvalidStatusError,
    OrderIntegrityError,
    OrderNotFoundError,
    SwapEngineError,
    ValidationError,
)
from swapengine.models import OrderRequest
from swapengine.utils import format_amount, now_ms, parse_amount

log = logging.getLogger("swapengine")

ENGINE_KEY = web.AppKey("engine", object)

REQUIRED_ORDER_FIELDS = ("fromSymbol", "toSymbol", "fromAmount", "destinationAddress")


def json_response(data: Any, status: int = 200) -> web.Response:
    return web.json_response(data, status=status, dumps=lambda obj: json.dumps(obj, default=str))


def error_response(message: str, status: int) -> web.Response:
    return json_response({"error": message}, status=status)


_ERROR_STATUS = {
    ValidationError: 400,
    InvalidStatusError: 400,
    OrderNotFoundError: 404,
    OrderIntegrityError: 409,
}


@web.middleware
async def error_middleware(request: web.Request, handler):
    try:
        return await handler(request)
    except web.HTTPException:
        raise
    except SwapEngineError as exc:
        status = next((code for cls, code in _ERROR_STATUS.items() if isinstance(exc, cls)), 500)
        if status >= 500:
            log.error(json.dumps({"event": "api_error", "path": request.path, "err": str(exc)}))
        return error_response(str(exc), status)


@web.middleware
async def cors_middleware(request: web.Request, handler):
    if request.method == "OPTIONS":
        response = web.Response(status=204)
    else:
        response = await handler(request)
    response.headers["Access-Control-Allow-Origin"] = "*"
    response.headers["Access-Control-Allow-Methods"] = "GET, POST, PUT, OPTIONS"
    response.headers["Access-Control-Allow-Headers"] = "Content-Type, Authorization"
    return response


async def _read_json(request: web.Request) -> Dict[str, Any]:
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise ValidationError("request body must be valid JSON") from None
    if not isinstance(body, dict):
        raise ValidationError("request body must be a JSON object")
    return body


class SwapAPI:
    def __init__(self, engine) -> None:
        self.engine = engine

    # --------------------------------------------------------
    # PUBLIC
    # --------------------------------------------------------

    async def health(self, request: web.Request) -> web.Response:
        """Liveness plus the active liquidity mode."""
        return json_response({
            "status": "UP",
            "engine": self.engine.settings.engine_version,
            "liquidityMode": self.engine.liquidity.current.mode.value,
            "timestamp": now_ms(),
            "components": self.engine.health.to_dict(),
        })

    async def quote(self, request: web.Request) -> web.Response:
        from_symbol = request.query.get("from", "").strip()
        to_symbol = request.query.get("to", "").strip()
        if not from_symbol or not to_symbol:
            raise ValidationError("query parameters 'from' and 'to' are required")
        amount = parse_amount(request.query.get("amount", "1"))
        if amount is None:
            raise ValidationError("amount must be a positive number")

        quote = await self.engine.aggregator.get_rate(from_symbol, to_symbol, amount)
        payload = quote.to_dict()
        payload["estimatedAmount"] = format_amount(amount * Decimal(str(quote.rate)))
        return json_response(payload)

    async def create_order(self, request: web.Request) -> web.Response:
        body = await _read_json(request)
        missing = [f for f in REQUIRED_ORDER_FIELDS if not str(body.get(f) or "").strip()]
        if missing:
            raise ValidationError(f"missing required settlement parameters: {', '.join(missing)}")
        amount = parse_amount(body["fromAmount"])
        if amount is None:
            raise ValidationError("fromAmount must be a positive number")
        from_symbol = str(body["fromSymbol"]).strip().upper()
        to_symbol = str(body["toSymbol"]).strip().upper()
        if from_symbol == to_symbol:
            raise ValidationError("fromSymbol and toSymbol must differ")

        quote = await self.engine.aggregator.get_rate(from_symbol, to_symbol, amount)
        order = await self.engine.manager.create_order(OrderRequest(
            from_symbol=from_symbol,
            to_symbol=to_symbol,
            from_amount=str(body["fromAmount"]).strip(),
            to_amount=format_amount(amount * Decimal(str(quote.rate))),
            destination_address=str(body["destinationAddress"]).strip(),
            rate=quote.rate,
            provider=quote.provider,
        ))
        return json_response(order.to_dict(), status=201)

    async def get_order(self, request: web.Request) -> web.Response:
        order = self.engine.manager.require_order(request.match_info["order_id"])
        return json_response(order.to_dict())

    async def market_ticker(self, request: web.Request) -> web.Response:
        return json_response(self.engine.aggregator.market_ticker())

    # --------------------------------------------------------
    # ADMIN
    # --------------------------------------------------------

    async def admin_orders(self, request: web.Request) -> web.Response:
        orders = sorted(self.engine.manager.get_all_orders(), key=lambda o: o.created_at, reverse=True)
        return json_response([o.to_dict() for o in orders])

    async def admin_summary(self, request: web.Request) -> web.Response:
        return json_response(self.engine.manager.get_summary().to_dict())

    async def admin_set_status(self, request: web.Request) -> web.Response:
        body = await _read_json(request)
        if "status" not in body:
            raise ValidationError("status is required")
        order = await self.engine.manager.override_status(request.match_info["order_id"], body["status"])
        return json_response(order.to_dict())

    async def admin_get_liquidity(self, request: web.Request) -> web.Response:
        return json_response(self._liquidity_payload())

    async def admin_update_liquidity(self, request: web.Request) -> web.Response:
        body = await _read_json(request)
        await self.engine.update_liquidity(body)
        return json_response(self._liquidity_payload())

    def _liquidity_payload(self) -> Dict[str, Any]:
        payload = self.engine.liquidity.current.public_dict()
        payload["partnerCircuit"] = self.engine.partner_breaker.get_state()
        return payload

    # --------------------------------------------------------
    # OBSERVABILITY
    # --------------------------------------------------------

    async def metrics(self, request: web.Request) -> web.Response:
        metrics = self.engine.metrics
        return web.Response(body=metrics.render(), headers={"Content-Type": metrics.content_type})


def create_app(engine) -> web.Application:
    """aiohttp Application with all routes bound to one engine instance."""
    api = SwapAPI(engine)
    app = web.Application(middlewares=[cors_middleware, error_middleware])
    app[ENGINE_KEY] = engine

    app.router.add_get("/api/health", api.health)
    app.router.add_get("/api/quote", api.quote)
    app.router.add_post("/api/orders", api.create_order)
    app.router.add_get("/api/orders/{order_id}", api.get_order)
    app.router.add_get("/api/market/ticker", api.market_ticker)

    app.router.add_get("/api/admin/orders", api.admin_orders)
    app.router.add_get("/api/admin/summary", api.admin_summary)
    app.router.add_post("/api/admin/orders/{order_id}/status", api.admin_set_status)
    app.router.add_get("/api/admin/liquidity", api.admin_get_liquidity)
    app.router.add_put("/api/admin/liquidity", api.admin_update_liquidity)

    app.router.add_get("/metrics", api.metrics)
    return app
