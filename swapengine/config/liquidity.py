"""
Runtime liquidity configuration (internal vs. settlement partner).

The only mutable configuration in the process. Readers take the current
immutable LiquidityConfig snapshot; writers go through the single
LiquiditySettings.update() setter, which serializes concurrent admin writes.
"""

from __future__ import annotations

import asyncio
import dataclasses
import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from swapengine.errors import ValidationError

log = logging.getLogger("swapengine")


class LiquidityMode(str, Enum):
    INTERNAL = "INTERNAL"
    PARTNER = "PARTNER"


@dataclass(frozen=True)
class LiquidityConfig:
    mode: LiquidityMode = LiquidityMode.INTERNAL
    partner_name: str = "CHANGENOW"
    partner_api_url: str = "https://api.changenow.io/v2"
    partner_api_key: Optional[str] = None

    @property
    def partner_enabled(self) -> bool:
        return self.mode == LiquidityMode.PARTNER

    def public_dict(self) -> Dict[str, Any]:
        """Serializable view; the API key itself is never exposed."""
        return {
            "mode": self.mode.value,
            "partnerName": self.partner_name,
            "partnerApiUrl": self.partner_api_url,
            "partnerApiKeySet": bool(self.partner_api_key),
        }

    @classmethod
    def from_settings(cls, settings) -> "LiquidityConfig":
        return cls(
            mode=LiquidityMode(settings.liquidity_mode),
            partner_name=settings.partner_name,
            partner_api_url=settings.partner_api_url,
            partner_api_key=settings.partner_api_key,
        )


_UPDATABLE = {
    "mode": "mode",
    "partnerName": "partner_name",
    "partnerApiUrl": "partner_api_url",
    "partnerApiKey": "partner_api_key",
}


class LiquiditySettings:
    def __init__(self, initial: Optional[LiquidityConfig] = None) -> None:
        self._config = initial or LiquidityConfig()
        self._lock = asyncio.Lock()
        self._version = 0

    @property
    def current(self) -> LiquidityConfig:
        return self._config

    @property
    def version(self) -> int:
        return self._version

    async def update(self, changes: Dict[str, Any]) -> LiquidityConfig:
        """
        Apply a partial update given in API field names.

        Raises ValidationError (and changes nothing) for unknown fields or
        bad values.
        """
        if not isinstance(changes, dict) or not changes:
            raise ValidationError("liquidity update must be a non-empty object")
        unknown = set(changes) - set(_UPDATABLE)
        if unknown:
            raise ValidationError(f"unknown liquidity fields: {', '.join(sorted(unknown))}")

        async with self._lock:
            kwargs: Dict[str, Any] = {}
            for api_name, value in changes.items():
                field_name = _UPDATABLE[api_name]
                if field_name == "mode":
                    try:
                        value = LiquidityMode(str(value).upper())
                    except ValueError:
                        raise ValidationError(f"invalid liquidity mode: {value!r}") from None
                elif field_name == "partner_api_key":
                    value = str(value) if value else None
                else:
                    if not isinstance(value, str) or not value.strip():
                        raise ValidationError(f"{api_name} must be a non-empty string")
                    value = value.strip()
                kwargs[field_name] = value
            if kwargs.get("partner_api_url") and not kwargs["partner_api_url"].startswith(("http://", "https://")):
                raise ValidationError("partnerApiUrl must be an http(s) URL")

            self._config = dataclasses.replace(self._config, **kwargs)
            self._version += 1
            log.info(json.dumps({
                "event": "liquidity_config_updated",
                "version": self._version,
                **{k: v for k, v in self._config.public_dict().items()},
            }))
            return self._config
