"""Runtime settings read from the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Mapping, Optional

from core.errors import ConfigurationError

DEFAULT_FALLBACK_USD_TRY_RATE = Decimal("34.5")


def _read_decimal(env: Mapping[str, str], name: str, default: Decimal) -> Decimal:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = Decimal(raw.strip())
    except InvalidOperation as exc:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from exc
    if value <= 0:
        raise ConfigurationError(f"{name} must be positive, got {raw!r}")
    return value


def _read_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw.strip())
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from exc
    if value <= 0:
        raise ConfigurationError(f"{name} must be positive, got {raw!r}")
    return value


@dataclass(frozen=True)
class Settings:
    """Service configuration.

    `cron_secret` and `database_url` are secrets. Do not log them.
    """

    cron_secret: Optional[str] = None
    database_url: Optional[str] = None
    fallback_usd_try_rate: Decimal = DEFAULT_FALLBACK_USD_TRY_RATE
    quote_timeout_seconds: float = 10.0
    settlement_timeout_seconds: float = 5.0
    sweep_max_concurrency: int = 8
    quote_cache_ttl_seconds: int = 300
    coingecko_api_key: Optional[str] = None
    refill_threshold: Decimal = Decimal("10000")
    refill_amount: Decimal = Decimal("90000")

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if env is None else env
        return cls(
            cron_secret=env.get("CRON_SECRET") or None,
            database_url=env.get("DATABASE_URL") or None,
            fallback_usd_try_rate=_read_decimal(env, "FALLBACK_USD_TRY_RATE", DEFAULT_FALLBACK_USD_TRY_RATE),
            quote_timeout_seconds=float(_read_decimal(env, "QUOTE_TIMEOUT_SECONDS", Decimal("10"))),
            settlement_timeout_seconds=float(_read_decimal(env, "SETTLEMENT_TIMEOUT_SECONDS", Decimal("5"))),
            sweep_max_concurrency=_read_int(env, "SWEEP_MAX_CONCURRENCY", 8),
            quote_cache_ttl_seconds=_read_int(env, "QUOTE_CACHE_TTL_SECONDS", 300),
            coingecko_api_key=env.get("COINGECKO_API_KEY") or None,
            refill_threshold=_read_decimal(env, "REFILL_THRESHOLD", Decimal("10000")),
            refill_amount=_read_decimal(env, "REFILL_AMOUNT", Decimal("90000")),
        )

    def require_cron_secret(self) -> str:
        if not self.cron_secret:
            raise ConfigurationError("CRON_SECRET environment variable is not set")
        return self.cron_secret
