"""Tests for quote aggregation, fallbacks and the simulated market."""

from __future__ import annotations

import asyncio
from decimal import Decimal
from typing import Mapping, Sequence

import pytest

from core.market_data.catalog import CATALOG, get_asset, static_quote
from core.market_data.oracle import QuoteAggregator, build_default_oracle
from core.market_data.simulated import SimulatedMarketProvider
from core.types import AssetQuote

from tests.fakes import quote


class StubProvider:
    """QuoteProvider returning canned quotes, or failing on demand."""

    def __init__(self, name: str, quotes: Mapping[str, AssetQuote], delay: float = 0.0) -> None:
        self.name = name
        self.quotes = dict(quotes)
        self.delay = delay
        self.error: Exception | None = None
        self.requested: list[list[str]] = []

    def supports(self, symbol: str) -> bool:
        return symbol in self.quotes

    async def fetch_quotes(self, symbols: Sequence[str]) -> Mapping[str, AssetQuote]:
        self.requested.append(list(symbols))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return {s: self.quotes[s] for s in symbols}


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


class TestQuoteAggregator:
    """Quotes degrade to cache, then catalog, never to an error."""

    @pytest.mark.asyncio
    async def test_routes_to_first_supporting_provider(self):
        first = StubProvider("first", {"BTC": quote("BTC", "90000")})
        second = StubProvider("second", {"BTC": quote("BTC", "1"), "AAPL": quote("AAPL", "200")})
        oracle = QuoteAggregator([first, second])

        quotes = await oracle.get_quotes(["btc", "AAPL", "BTC"])

        assert quotes["BTC"].price == Decimal("90000")
        assert quotes["AAPL"].price == Decimal("200")
        assert first.requested == [["BTC"]]
        assert second.requested == [["AAPL"]]

    @pytest.mark.asyncio
    async def test_failed_provider_falls_back_to_cache(self):
        clock = FakeClock()
        provider = StubProvider("live", {"BTC": quote("BTC", "90000")})
        oracle = QuoteAggregator([provider], cache_ttl_seconds=300, clock=clock)

        await oracle.get_quotes(["BTC"])
        provider.error = RuntimeError("rate limited")
        clock.now = 100.0

        result = await oracle.get_quote("BTC")

        assert result.price == Decimal("90000")
        assert result.source == "cache:static"

    @pytest.mark.asyncio
    async def test_expired_cache_falls_back_to_catalog(self):
        clock = FakeClock()
        provider = StubProvider("live", {"BTC": quote("BTC", "90000")})
        oracle = QuoteAggregator([provider], cache_ttl_seconds=300, clock=clock)

        await oracle.get_quotes(["BTC"])
        provider.error = RuntimeError("rate limited")
        clock.now = 301.0

        result = await oracle.get_quote("BTC")

        assert result.price == CATALOG["BTC"].seed_price
        assert result.source == "static"

    @pytest.mark.asyncio
    async def test_slow_provider_times_out(self):
        provider = StubProvider("slow", {"BTC": quote("BTC", "90000")}, delay=1.0)
        oracle = QuoteAggregator([provider], provider_timeout_seconds=0.05)

        quotes = await oracle.get_quotes(["BTC"])

        assert quotes["BTC"].source == "static"

    @pytest.mark.asyncio
    async def test_non_positive_price_is_ignored(self):
        provider = StubProvider("live", {"BTC": quote("BTC", "0")})
        oracle = QuoteAggregator([provider])

        quotes = await oracle.get_quotes(["BTC"])

        assert quotes["BTC"].price == CATALOG["BTC"].seed_price

    @pytest.mark.asyncio
    async def test_unknown_symbol_is_absent(self):
        oracle = QuoteAggregator([])

        assert await oracle.get_quotes(["NOPE"]) == {}
        assert await oracle.get_quotes([]) == {}

    @pytest.mark.asyncio
    async def test_static_fallback_can_be_disabled(self):
        oracle = QuoteAggregator([], static_fallback=False)

        assert await oracle.get_quotes(["BTC"]) == {}

    def test_default_oracle_has_live_feeds_first(self):
        oracle = build_default_oracle()

        names = [p.name for p in oracle._providers]
        assert names == ["coingecko", "tcmb", "simulated"]


class TestCatalog:
    def test_quote_currencies(self):
        assert get_asset("btc").currency == "USDT"
        assert get_asset("THYAO").currency == "TRY"
        assert get_asset("USD").currency == "TRY"
        assert get_asset("USD").category == "currency"
        assert static_quote("NOPE") is None


class TestSimulatedMarket:
    """Random walk bounded by the configured step."""

    @pytest.mark.asyncio
    async def test_step_is_bounded_and_persistent(self):
        provider = SimulatedMarketProvider(symbols=["AAPL"], seed=7)

        previous = CATALOG["AAPL"].seed_price
        for _ in range(50):
            quotes = await provider.fetch_quotes(["AAPL"])
            price = quotes["AAPL"].price
            assert abs(price - previous) <= previous * Decimal("0.02") + Decimal("0.01")
            assert abs(quotes["AAPL"].change_percent) <= Decimal("2")
            previous = price

    @pytest.mark.asyncio
    async def test_seeded_runs_are_reproducible(self):
        first = SimulatedMarketProvider(seed=42)
        second = SimulatedMarketProvider(seed=42)

        a = await first.fetch_quotes(["THYAO", "XAU"])
        b = await second.fetch_quotes(["THYAO", "XAU"])

        assert a == b

    @pytest.mark.asyncio
    async def test_sub_unit_prices_keep_precision(self):
        provider = SimulatedMarketProvider(symbols=["DOGE"], seed=1)

        quotes = await provider.fetch_quotes(["DOGE"])

        assert Decimal("0.08") < quotes["DOGE"].price < Decimal("0.09")
        assert quotes["DOGE"].source == "simulated"

    @pytest.mark.asyncio
    async def test_reset_returns_to_seed(self):
        provider = SimulatedMarketProvider(symbols=["SPY"], seed=3)
        await provider.fetch_quotes(["SPY"])

        provider.reset()

        assert provider._prices == {}
        assert not provider.supports("NOPE")

    @pytest.mark.asyncio
    async def test_unknown_and_unconfigured_symbols_are_skipped(self):
        provider = SimulatedMarketProvider(symbols=["AAPL", "NOPE"], seed=5)

        quotes = await provider.fetch_quotes(["AAPL", "NOPE", "TSLA"])

        assert set(quotes) == {"AAPL"}
