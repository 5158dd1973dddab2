"""
Tests for environment-driven settings and the runtime liquidity config.
"""

import asyncio

import pytest

from swapengine.config.config import Settings, env_bool
from swapengine.config.liquidity import LiquidityConfig, LiquidityMode, LiquiditySettings
from swapengine.errors import ValidationError


@pytest.fixture
def clean_env(monkeypatch):
    import os

    for key in list(os.environ):
        if key.startswith("SWAP_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.delenv("PORT", raising=False)
    return monkeypatch


class TestSettings:
    def test_defaults(self, clean_env):
        cfg = Settings.load()
        assert cfg.port == 3001
        assert cfg.engine_version == "v4.0.3-PROD"
        assert cfg.observer_interval == 4.0
        assert cfg.liquidity_mode == "INTERNAL"
        assert cfg.partner_name == "CHANGENOW"
        assert cfg.quote_ttl_sec == 30
        assert cfg.rng_seed is None

    def test_overrides(self, clean_env):
        clean_env.setenv("SWAP_PORT", "8080")
        clean_env.setenv("SWAP_LIQUIDITY_MODE", "partner")
        clean_env.setenv("SWAP_PARTNER_API_KEY", "k")
        clean_env.setenv("SWAP_RNG_SEED", "42")
        cfg = Settings.load()
        assert cfg.port == 8080
        assert cfg.liquidity_mode == "PARTNER"
        assert cfg.rng_seed == 42

    def test_port_fallback(self, clean_env):
        clean_env.setenv("PORT", "4000")
        assert Settings.load().port == 4000

    @pytest.mark.parametrize("key,value", [
        ("SWAP_LIQUIDITY_MODE", "HYBRID"),
        ("SWAP_PRICE_TIMEOUT_SEC", "30"),
        ("SWAP_PARTNER_TIMEOUT_SEC", "0.1"),
        ("SWAP_DEPOSIT_DETECT_PROB", "1.5"),
        ("SWAP_OBSERVER_INTERVAL_SEC", "0"),
        ("SWAP_PORT", "70000"),
    ])
    def test_invalid_values(self, clean_env, key, value):
        clean_env.setenv(key, value)
        with pytest.raises(ValueError):
            Settings.load()

    def test_dump_masks_key(self, clean_env):
        clean_env.setenv("SWAP_PARTNER_API_KEY", "super-secret")
        dumped = Settings.load().dump()
        assert dumped["partner_api_key"] == "***"

    def test_env_bool(self, clean_env):
        clean_env.setenv("SWAP_FLAG", "yes")
        assert env_bool("SWAP_FLAG", False) is True
        assert env_bool("SWAP_MISSING", True) is True


class TestLiquiditySettings:
    @pytest.mark.asyncio
    async def test_update_mode(self):
        settings = LiquiditySettings()
        cfg = await settings.update({"mode": "partner", "partnerApiKey": "k"})
        assert cfg.mode == LiquidityMode.PARTNER
        assert cfg.partner_enabled
        assert settings.current is cfg
        assert settings.version == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("changes", [
        {},
        {"mode": "HYBRID"},
        {"fee": 0.01},
        {"partnerName": ""},
        {"partnerApiUrl": "ftp://partner.test"},
    ])
    async def test_rejected_updates_change_nothing(self, changes):
        settings = LiquiditySettings()
        before = settings.current
        with pytest.raises(ValidationError):
            await settings.update(changes)
        assert settings.current is before
        assert settings.version == 0

    @pytest.mark.asyncio
    async def test_concurrent_updates_serialize(self):
        settings = LiquiditySettings()
        await asyncio.gather(*(settings.update({"partnerName": f"P{i}"}) for i in range(10)))
        assert settings.version == 10
        assert settings.current.partner_name.startswith("P")

    def test_public_dict_hides_key(self):
        cfg = LiquidityConfig(partner_api_key="super-secret")
        public = cfg.public_dict()
        assert public["partnerApiKeySet"] is True
        assert "super-secret" not in str(public)
