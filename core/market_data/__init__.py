"""Market data: live quotes for tradable assets.

Quotes come from CoinGecko (crypto), TCMB (FX) and a simulated market for the
rest of the demo catalog, merged by `QuoteAggregator`.
"""

from core.market_data.catalog import CATALOG, CatalogAsset, get_asset, static_quote
from core.market_data.coingecko_client import CoinGeckoQuoteProvider
from core.market_data.interfaces import PriceOracle, QuoteProvider
from core.market_data.oracle import QuoteAggregator, build_default_oracle
from core.market_data.simulated import SimulatedMarketProvider
from core.market_data.tcmb import TcmbQuoteProvider

__all__ = [
    "CATALOG",
    "CatalogAsset",
    "CoinGeckoQuoteProvider",
    "PriceOracle",
    "QuoteAggregator",
    "QuoteProvider",
    "SimulatedMarketProvider",
    "TcmbQuoteProvider",
    "build_default_oracle",
    "get_asset",
    "static_quote",
]
