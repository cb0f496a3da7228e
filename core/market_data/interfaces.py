from __future__ import annotations

from typing import Mapping, Protocol, Sequence

from core.types import AssetQuote


class PriceOracle(Protocol):
    """Batched live quotes for a set of symbols.

    Symbols it cannot price are absent from the result; callers decide what a
    miss means (skip, zero value, UnknownAsset).
    """

    async def get_quotes(self, symbols: Sequence[str]) -> Mapping[str, AssetQuote]:
        raise NotImplementedError


class QuoteProvider(Protocol):
    """One upstream source of quotes (an exchange API, an FX feed, a simulator)."""

    name: str

    def supports(self, symbol: str) -> bool:
        raise NotImplementedError

    async def fetch_quotes(self, symbols: Sequence[str]) -> Mapping[str, AssetQuote]:
        raise NotImplementedError
