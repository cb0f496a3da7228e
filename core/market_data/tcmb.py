"""TCMB (Central Bank of the Republic of Türkiye) FX rates.

Reads the daily `today.xml` feed and quotes USD and EUR in TRY using the
`ForexSelling` rate. USDT is quoted at the USD rate.
"""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from decimal import Decimal, InvalidOperation
from typing import Mapping, Optional, Sequence

import httpx

from core.types import AssetQuote

logger = logging.getLogger(__name__)

TCMB_TODAY_URL = "https://www.tcmb.gov.tr/kurlar/today.xml"

_NAMES = {"USD": "US Dollar", "EUR": "Euro", "USDT": "Tether"}


def parse_forex_selling(xml_text: str) -> dict[str, Decimal]:
    """Return {currency_code: ForexSelling} for every currency in the feed.

    Entries without a positive numeric ForexSelling are left out.
    """
    root = ET.fromstring(xml_text)
    rates: dict[str, Decimal] = {}
    for node in root.iter("Currency"):
        code = node.get("CurrencyCode") or node.get("Kod")
        raw = node.findtext("ForexSelling")
        if not code or not raw or not raw.strip():
            continue
        try:
            rate = Decimal(raw.strip())
        except InvalidOperation:
            continue
        if rate > 0:
            rates[code.upper()] = rate
    return rates


class TcmbQuoteProvider:
    """Quotes USD, EUR and USDT in TRY from the TCMB daily feed."""

    name = "tcmb"
    SYMBOLS = frozenset({"USD", "EUR", "USDT"})

    def __init__(
        self,
        *,
        url: str = TCMB_TODAY_URL,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._url = url
        self._timeout = timeout
        self._client = client

    def supports(self, symbol: str) -> bool:
        return symbol.upper() in self.SYMBOLS

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=httpx.Timeout(self._timeout))
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def fetch_quotes(self, symbols: Sequence[str]) -> Mapping[str, AssetQuote]:
        wanted = {s.upper() for s in symbols if self.supports(s)}
        if not wanted:
            return {}

        client = await self._get_client()
        response = await client.get(self._url)
        response.raise_for_status()

        try:
            rates = parse_forex_selling(response.text)
        except ET.ParseError as exc:
            logger.error(f"TCMB returned malformed XML: {exc}")
            return {}

        quotes: dict[str, AssetQuote] = {}
        for symbol in wanted:
            code = "USD" if symbol == "USDT" else symbol
            rate = rates.get(code)
            if rate is None:
                continue
            quotes[symbol] = AssetQuote(
                symbol=symbol,
                price=rate,
                currency="TRY",
                category="currency",
                name=_NAMES.get(symbol, symbol),
                source=self.name,
            )
        return quotes
