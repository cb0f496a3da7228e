"""Simulated market for demo assets without a live feed.

Each fetch moves every requested price by a random step in [-2%, +2%] from its
last value, rounded to 2 decimals (6 for sub-unit prices). Prices persist between calls so they evolve
instead of resetting. Seed the generator for reproducible tests.
"""

from __future__ import annotations

import random
from dataclasses import replace
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Mapping, Optional, Sequence

from core.market_data.catalog import CATALOG, get_asset
from core.types import AssetQuote

MAX_STEP_PERCENT = 2.0
_CENT = Decimal("0.01")
_SUB_CENT = Decimal("0.000001")


class SimulatedMarketProvider:
    """Random-walk quotes for catalog symbols."""

    name = "simulated"

    def __init__(
        self,
        *,
        symbols: Optional[Iterable[str]] = None,
        seed: Optional[int] = None,
        max_step_percent: float = MAX_STEP_PERCENT,
    ) -> None:
        self._symbols = frozenset(s.upper() for s in symbols) if symbols is not None else frozenset(CATALOG)
        self._rng = random.Random(seed)
        self._max_step = max_step_percent
        self._prices: dict[str, Decimal] = {}

    def supports(self, symbol: str) -> bool:
        return symbol.upper() in self._symbols and get_asset(symbol) is not None

    def reset(self) -> None:
        """Forget walked prices; the next fetch starts from seed prices again."""
        self._prices.clear()

    def _step(self, price: Decimal) -> tuple[Decimal, Decimal]:
        change = Decimal(str(round(self._rng.uniform(-self._max_step, self._max_step), 2)))
        new_price = (price * (1 + change / 100)).quantize(
            _CENT if price >= 1 else _SUB_CENT, rounding=ROUND_HALF_UP
        )
        if new_price <= 0:
            new_price = price
        return new_price, change

    async def fetch_quotes(self, symbols: Sequence[str]) -> Mapping[str, AssetQuote]:
        quotes: dict[str, AssetQuote] = {}
        for symbol in symbols:
            asset = get_asset(symbol)
            if asset is None or not self.supports(symbol):
                continue
            current = self._prices.get(asset.symbol, asset.seed_price)
            new_price, change = self._step(current)
            self._prices[asset.symbol] = new_price
            quotes[asset.symbol] = replace(
                asset.to_quote(price=new_price, source=self.name), change_percent=change
            )
        return quotes
