"""Static asset catalog.

Seed prices for every tradable symbol. The oracle falls back to these when no
live provider and no cached value can price a symbol, and the simulated
market walks from them.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from core.types import AssetCategory, AssetQuote, QuoteCurrency


@dataclass(frozen=True)
class CatalogAsset:
    symbol: str
    name: str
    category: AssetCategory
    currency: QuoteCurrency
    seed_price: Decimal

    def to_quote(self, *, price: Optional[Decimal] = None, source: str = "static") -> AssetQuote:
        return AssetQuote(
            symbol=self.symbol,
            price=self.seed_price if price is None else price,
            currency=self.currency,
            category=self.category,
            name=self.name,
            source=source,
        )


CATALOG: dict[str, CatalogAsset] = {
    asset.symbol: asset
    for asset in (
        # Crypto (priced in USDT)
        CatalogAsset("BTC", "Bitcoin", "crypto", "USDT", Decimal("43250.00")),
        CatalogAsset("ETH", "Ethereum", "crypto", "USDT", Decimal("2280.50")),
        CatalogAsset("SOL", "Solana", "crypto", "USDT", Decimal("98.40")),
        CatalogAsset("AVAX", "Avalanche", "crypto", "USDT", Decimal("35.20")),
        CatalogAsset("DOGE", "Dogecoin", "crypto", "USDT", Decimal("0.085")),
        # US stocks
        CatalogAsset("AAPL", "Apple Inc.", "stock", "USD", Decimal("178.50")),
        CatalogAsset("TSLA", "Tesla, Inc.", "stock", "USD", Decimal("245.80")),
        CatalogAsset("NVDA", "NVIDIA Corp.", "stock", "USD", Decimal("495.20")),
        # BIST stocks (priced in TRY)
        CatalogAsset("THYAO", "Türk Hava Yolları", "stock", "TRY", Decimal("268.75")),
        CatalogAsset("GARAN", "Garanti BBVA", "stock", "TRY", Decimal("112.40")),
        CatalogAsset("ASELS", "Aselsan", "stock", "TRY", Decimal("64.30")),
        # Commodities and ETFs
        CatalogAsset("XAU", "Gold (oz)", "commodity", "USD", Decimal("2035.40")),
        CatalogAsset("SPY", "SPDR S&P 500 ETF", "etf", "USD", Decimal("472.65")),
        # Currencies (priced in TRY)
        CatalogAsset("USD", "US Dollar", "currency", "TRY", Decimal("34.50")),
        CatalogAsset("USDT", "Tether", "currency", "TRY", Decimal("34.50")),
        CatalogAsset("EUR", "Euro", "currency", "TRY", Decimal("37.40")),
    )
}


def get_asset(symbol: str) -> Optional[CatalogAsset]:
    return CATALOG.get(symbol.upper())


def static_quote(symbol: str) -> Optional[AssetQuote]:
    asset = get_asset(symbol)
    return asset.to_quote() if asset is not None else None
