"""Quote aggregation across providers.

Each requested symbol is routed to the first provider that supports it. All
provider calls run concurrently, each bounded by a timeout. When a provider
fails or omits a symbol, that symbol degrades to the last good quote seen
within the cache TTL, then to the static catalog price. Symbols that no
provider supports and the catalog does not know are absent from the result.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, replace
from typing import Callable, Iterable, Mapping, Optional, Sequence

from core.market_data.catalog import static_quote
from core.market_data.coingecko_client import CoinGeckoQuoteProvider
from core.market_data.interfaces import QuoteProvider
from core.market_data.simulated import SimulatedMarketProvider
from core.market_data.tcmb import TcmbQuoteProvider
from core.types import AssetQuote

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _CachedQuote:
    quote: AssetQuote
    fetched_at: float


class QuoteAggregator:
    """PriceOracle over an ordered list of QuoteProviders."""

    def __init__(
        self,
        providers: Iterable[QuoteProvider],
        *,
        provider_timeout_seconds: float = 10.0,
        cache_ttl_seconds: float = 300.0,
        static_fallback: bool = True,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._providers = list(providers)
        self._timeout = provider_timeout_seconds
        self._cache_ttl = cache_ttl_seconds
        self._static_fallback = static_fallback
        self._clock = clock
        self._cache: dict[str, _CachedQuote] = {}

    def _route(self, symbols: Sequence[str]) -> dict[int, list[str]]:
        routes: dict[int, list[str]] = {}
        for symbol in symbols:
            for index, provider in enumerate(self._providers):
                if provider.supports(symbol):
                    routes.setdefault(index, []).append(symbol)
                    break
        return routes

    async def _fetch(self, provider: QuoteProvider, symbols: list[str]) -> Mapping[str, AssetQuote]:
        try:
            return await asyncio.wait_for(provider.fetch_quotes(symbols), timeout=self._timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Quote provider {provider.name} timed out after {self._timeout}s")
        except Exception as exc:
            logger.warning(f"Quote provider {provider.name} failed: {exc}")
        return {}

    def _fallback(self, symbol: str, now: float) -> Optional[AssetQuote]:
        cached = self._cache.get(symbol)
        if cached is not None and now - cached.fetched_at <= self._cache_ttl:
            return replace(cached.quote, source=f"cache:{cached.quote.source}")
        if self._static_fallback:
            return static_quote(symbol)
        return None

    async def get_quotes(self, symbols: Sequence[str]) -> Mapping[str, AssetQuote]:
        wanted = list(dict.fromkeys(s.upper() for s in symbols if s))
        if not wanted:
            return {}

        routes = self._route(wanted)
        results = await asyncio.gather(
            *(self._fetch(self._providers[index], batch) for index, batch in routes.items())
        )

        now = self._clock()
        quotes: dict[str, AssetQuote] = {}
        for batch in results:
            for symbol, quote in batch.items():
                if symbol in quotes or quote.price <= 0:
                    continue
                quotes[symbol] = quote
                self._cache[symbol] = _CachedQuote(quote=quote, fetched_at=now)

        for symbol in wanted:
            if symbol in quotes:
                continue
            fallback = self._fallback(symbol, now)
            if fallback is None:
                logger.debug(f"No quote available for {symbol}")
                continue
            logger.info(f"Using {fallback.source} quote for {symbol}")
            quotes[symbol] = fallback

        return quotes

    async def get_quote(self, symbol: str) -> Optional[AssetQuote]:
        quotes = await self.get_quotes([symbol])
        return quotes.get(symbol.upper())

    async def close(self) -> None:
        for provider in self._providers:
            close = getattr(provider, "close", None)
            if close is not None:
                await close()


def build_default_oracle(
    *,
    coingecko_api_key: Optional[str] = None,
    timeout_seconds: float = 10.0,
    cache_ttl_seconds: float = 300.0,
) -> QuoteAggregator:
    """Live crypto and FX feeds first, the simulated market for everything else."""
    return QuoteAggregator(
        [
            CoinGeckoQuoteProvider(api_key=coingecko_api_key, timeout=timeout_seconds),
            TcmbQuoteProvider(timeout=timeout_seconds),
            SimulatedMarketProvider(),
        ],
        provider_timeout_seconds=timeout_seconds,
        cache_ttl_seconds=cache_ttl_seconds,
    )
