"""
Environment-driven configuration with validation.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


def env_bool(key: str, default: bool) -> bool:
    val = os.getenv(key)
    if val is None:
        return default
    return val.lower() in {"1", "true", "yes", "y"}


@dataclass(frozen=True)
class Settings:
    host: str
    port: int
    log_level: str
    log_file: Optional[str]
    engine_version: str
    # Lifecycle observer
    observer_interval: float
    deposit_detect_prob: float
    confirm_prob_pow: float
    confirm_prob_fast: float
    exchange_prob: float
    send_prob: float
    rng_seed: Optional[int]
    order_retention_sec: int
    # Price source / quoting
    price_api_url: str
    price_refresh_interval: float
    price_timeout: float
    quote_ttl_sec: int
    # Settlement partner
    liquidity_mode: str  # INTERNAL or PARTNER
    partner_name: str
    partner_api_url: str
    partner_api_key: Optional[str]
    partner_timeout: float
    partner_error_threshold: int
    partner_cooldown_sec: float

    def dump(self) -> dict:
        """Return a dict of settings for sanity checks/logging (secrets masked)."""
        data = self.__dict__.copy()
        if data.get("partner_api_key"):
            data["partner_api_key"] = "***"
        return data

    @classmethod
    def load(cls) -> "Settings":
        def _int_env(key: str, default: int) -> int:
            raw = os.getenv(key)
            if raw is None or raw == "":
                return default
            return int(raw)

        def _float_env(key: str, default: float) -> float:
            raw = os.getenv(key)
            if raw is None or raw == "":
                return default
            return float(raw)

        seed_raw = os.getenv("SWAP_RNG_SEED")
        cfg = cls(
            host=os.getenv("SWAP_HOST", "0.0.0.0"),
            port=_int_env("SWAP_PORT", _int_env("PORT", 3001)),
            log_level=os.getenv("SWAP_LOG_LEVEL", "INFO").upper(),
            log_file=os.getenv("SWAP_LOG_FILE", "swapengine.log") or None,
            engine_version=os.getenv("SWAP_ENGINE_VERSION", "v4.0.3-PROD"),
            observer_interval=_float_env("SWAP_OBSERVER_INTERVAL_SEC", 4.0),
            deposit_detect_prob=_float_env("SWAP_DEPOSIT_DETECT_PROB", 0.15),
            confirm_prob_pow=_float_env("SWAP_CONFIRM_PROB_POW", 0.45),
            confirm_prob_fast=_float_env("SWAP_CONFIRM_PROB_FAST", 0.9),
            exchange_prob=_float_env("SWAP_EXCHANGE_PROB", 0.6),
            send_prob=_float_env("SWAP_SEND_PROB", 0.5),
            rng_seed=int(seed_raw) if seed_raw else None,
            order_retention_sec=_int_env("SWAP_ORDER_RETENTION_SEC", 7 * 24 * 3600),
            price_api_url=os.getenv("SWAP_PRICE_API_URL", "https://api.coingecko.com/api/v3"),
            price_refresh_interval=_float_env("SWAP_PRICE_REFRESH_SEC", 30.0),
            price_timeout=_float_env("SWAP_PRICE_TIMEOUT_SEC", 8.0),
            quote_ttl_sec=_int_env("SWAP_QUOTE_TTL_SEC", 30),
            liquidity_mode=os.getenv("SWAP_LIQUIDITY_MODE", "INTERNAL").upper(),
            partner_name=os.getenv("SWAP_PARTNER_NAME", "CHANGENOW"),
            partner_api_url=os.getenv("SWAP_PARTNER_API_URL", "https://api.changenow.io/v2"),
            partner_api_key=os.getenv("SWAP_PARTNER_API_KEY"),
            partner_timeout=_float_env("SWAP_PARTNER_TIMEOUT_SEC", 8.0),
            partner_error_threshold=_int_env("SWAP_PARTNER_ERROR_THRESHOLD", 3),
            partner_cooldown_sec=_float_env("SWAP_PARTNER_COOLDOWN_SEC", 30.0),
        )
        cfg._validate()
        _sanity_check(cfg)
        return cfg

    def _validate(self) -> None:
        if not 0 < self.port < 65536:
            raise ValueError("SWAP_PORT must be in 1..65535")
        if self.observer_interval <= 0:
            raise ValueError("SWAP_OBSERVER_INTERVAL_SEC must be > 0")
        for name in ("deposit_detect_prob", "confirm_prob_pow", "confirm_prob_fast", "exchange_prob", "send_prob"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"SWAP_{name.upper()} must be within [0, 1]")
        if self.price_refresh_interval <= 0:
            raise ValueError("SWAP_PRICE_REFRESH_SEC must be > 0")
        # External fetches must never block a refresh or a request for long.
        if not 1.0 <= self.price_timeout <= 10.0:
            raise ValueError("SWAP_PRICE_TIMEOUT_SEC must be within [1, 10]")
        if not 1.0 <= self.partner_timeout <= 10.0:
            raise ValueError("SWAP_PARTNER_TIMEOUT_SEC must be within [1, 10]")
        if self.quote_ttl_sec <= 0:
            raise ValueError("SWAP_QUOTE_TTL_SEC must be > 0")
        if self.order_retention_sec < 0:
            raise ValueError("SWAP_ORDER_RETENTION_SEC must be >= 0")
        if self.liquidity_mode not in {"INTERNAL", "PARTNER"}:
            raise ValueError("SWAP_LIQUIDITY_MODE must be INTERNAL or PARTNER")
        if self.partner_error_threshold <= 0:
            raise ValueError("SWAP_PARTNER_ERROR_THRESHOLD must be > 0")

        if self.liquidity_mode == "PARTNER" and not self.partner_api_key:
            logging.getLogger("swapengine").warning(
                "WARNING: SWAP_LIQUIDITY_MODE=PARTNER without SWAP_PARTNER_API_KEY. "
                "Partner calls will be rejected and orders will fall back to internal liquidity."
            )
        if self.order_retention_sec == 0:
            logging.getLogger("swapengine").warning(
                "WARNING: SWAP_ORDER_RETENTION_SEC=0 disables pruning; memory grows with every order."
            )


def _sanity_check(cfg: Settings) -> None:
    """
    Log critical settings once at startup so overrides are obvious.
    """
    logger = logging.getLogger("swapengine")
    payload = {
        "event": "config_loaded",
        "port": cfg.port,
        "observer_interval": cfg.observer_interval,
        "price_refresh_interval": cfg.price_refresh_interval,
        "liquidity_mode": cfg.liquidity_mode,
        "partner_name": cfg.partner_name,
    }
    logger.info(json.dumps(payload))
