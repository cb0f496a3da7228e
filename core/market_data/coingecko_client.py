"""CoinGecko API client for live crypto prices.

Uses the `/simple/price` endpoint; a demo API key is optional
(COINGECKO_API_KEY, sent as `x-cg-demo-api-key`).

Rate limits (CoinGecko free tier):
- 10-30 calls/minute
- Cache responses (the quote aggregator keeps them for QUOTE_CACHE_TTL_SECONDS)
"""

from __future__ import annotations

import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping, Optional, Sequence

import httpx

from core.market_data.catalog import get_asset
from core.types import STABLECOIN, ZERO, AssetQuote

logger = logging.getLogger(__name__)

COINGECKO_API_BASE = "https://api.coingecko.com/api/v3"

# Our symbols -> CoinGecko coin ids
COINGECKO_ID_MAP: dict[str, str] = {
    "BTC": "bitcoin",
    "ETH": "ethereum",
    "SOL": "solana",
    "AVAX": "avalanche-2",
    "DOGE": "dogecoin",
}


def _to_decimal(value: Any) -> Optional[Decimal]:
    if value is None:
        return None
    try:
        return Decimal(str(value))
    except InvalidOperation:
        return None


class CoinGeckoQuoteProvider:
    """Async CoinGecko client returning USDT quotes for mapped crypto symbols.

    CoinGecko prices in USD; crypto trades against USDT, which is pegged 1:1.
    """

    name = "coingecko"

    def __init__(
        self,
        *,
        api_key: Optional[str] = None,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        """Initialize the provider.

        Args:
            api_key: Optional demo API key
            timeout: Request timeout in seconds
            client: Injected client (tests); created lazily otherwise
        """
        self._api_key = api_key
        self._timeout = timeout
        self._client = client

    def supports(self, symbol: str) -> bool:
        return symbol.upper() in COINGECKO_ID_MAP

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self._api_key:
            headers["x-cg-demo-api-key"] = self._api_key
        return headers

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=COINGECKO_API_BASE,
                headers=self._headers(),
                timeout=httpx.Timeout(self._timeout),
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def fetch_quotes(self, symbols: Sequence[str]) -> Mapping[str, AssetQuote]:
        """Fetch prices and 24h change for the supported symbols.

        Raises:
            httpx.HTTPError: If the request fails or returns a non-2xx status
        """
        wanted = {s.upper(): COINGECKO_ID_MAP[s.upper()] for s in symbols if self.supports(s)}
        if not wanted:
            return {}

        client = await self._get_client()
        response = await client.get(
            "/simple/price",
            params={
                "ids": ",".join(sorted(set(wanted.values()))),
                "vs_currencies": "usd",
                "include_24hr_change": "true",
            },
        )
        response.raise_for_status()
        data = response.json()

        if not isinstance(data, dict):
            logger.error(f"Unexpected CoinGecko response format: {type(data)}")
            return {}

        quotes: dict[str, AssetQuote] = {}
        for symbol, coin_id in wanted.items():
            coin = data.get(coin_id)
            if not isinstance(coin, dict):
                continue
            price = _to_decimal(coin.get("usd"))
            if price is None or price <= 0:
                continue
            asset = get_asset(symbol)
            quotes[symbol] = AssetQuote(
                symbol=symbol,
                price=price,
                currency=STABLECOIN,
                category="crypto",
                change_percent=_to_decimal(coin.get("usd_24h_change")) or ZERO,
                name=asset.name if asset is not None else symbol,
                source=self.name,
            )

        logger.debug(f"Fetched {len(quotes)} crypto quotes from CoinGecko")
        return quotes
