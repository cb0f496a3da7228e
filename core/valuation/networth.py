"""Net worth and profit/loss valuation.

All monetary values are normalized to USD. TRY-priced assets and the TRY
cash balance are converted with the live USD/TRY rate; USDT is treated 1:1
with USD. Currency holdings other than USD and USDT (e.g. EUR) count as cash,
never as investments.

This module is the single place where currency normalization happens.
Every view and check consumes these results instead of converting locally.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Iterable, Iterator, Mapping, Optional

from core.types import (
    CURRENCY_SYMBOLS,
    HOME_CURRENCY,
    STABLECOIN,
    VALUATION_CURRENCY,
    ZERO,
    AssetQuote,
    Holding,
    NetWorth,
    ProfitLoss,
)

BREAKDOWN_CATEGORIES = ("stock", "crypto", "commodity")
CURRENCY_CATEGORY = "currency"


def _require_rate(usd_try_rate: Decimal) -> None:
    if usd_try_rate is None or usd_try_rate <= 0:
        raise ValueError("usd_try_rate must be positive; resolve a fallback rate before valuing")


def to_usd(amount: Decimal, currency: Optional[str], usd_try_rate: Decimal) -> Decimal:
    """Convert an amount in the given quote currency to USD."""
    if currency == HOME_CURRENCY:
        return amount / usd_try_rate
    return amount


def _priced_holdings(
    holdings: Iterable[Holding], quotes: Mapping[str, AssetQuote]
) -> Iterator[tuple[Holding, AssetQuote]]:
    """Quoted non-cash holdings; unquoted ones are skipped."""
    for item in holdings:
        if item.symbol in CURRENCY_SYMBOLS:
            continue
        quote = quotes.get(item.symbol)
        if quote is not None:
            yield item, quote


def compute_net_worth(
    balance_try: Decimal,
    holdings: Iterable[Holding],
    quotes: Mapping[str, AssetQuote],
    usd_try_rate: Decimal,
) -> NetWorth:
    """Calculate total net worth in USD.

    Formula:
        total ($) = balance_try / rate + USD + USDT + foreign cash + sum(qty * price_usd)

    Args:
        balance_try: TRY cash balance
        holdings: User holdings (currency holdings count as cash)
        quotes: Live quotes keyed by symbol
        usd_try_rate: TRY per 1 USD (must be > 0)

    Returns:
        NetWorth with totals, cash components and per-category breakdown.
        Holdings without a quote contribute zero.
    """
    _require_rate(usd_try_rate)
    holdings = list(holdings)

    cash_try_in_usd = balance_try / usd_try_rate
    cash_usd = sum((h.quantity for h in holdings if h.symbol == VALUATION_CURRENCY), ZERO)
    cash_usdt = sum((h.quantity for h in holdings if h.symbol == STABLECOIN), ZERO)

    breakdown: dict[str, Decimal] = {category: ZERO for category in BREAKDOWN_CATEGORIES}
    investments_value_usd = ZERO
    cash_foreign_usd = ZERO

    for item, quote in _priced_holdings(holdings, quotes):
        value_usd = to_usd(item.quantity * quote.price, quote.currency, usd_try_rate)
        if quote.category == CURRENCY_CATEGORY:
            cash_foreign_usd += value_usd
            continue
        investments_value_usd += value_usd
        breakdown[quote.category] = breakdown.get(quote.category, ZERO) + value_usd

    total_usd = cash_try_in_usd + cash_usd + cash_usdt + cash_foreign_usd + investments_value_usd

    return NetWorth(
        total_usd=total_usd,
        total_try=total_usd * usd_try_rate,
        cash_try_in_usd=cash_try_in_usd,
        cash_usd=cash_usd,
        cash_usdt=cash_usdt,
        cash_foreign_usd=cash_foreign_usd,
        investments_value_usd=investments_value_usd,
        breakdown=breakdown,
    )


def compute_profit_loss(
    holdings: Iterable[Holding],
    quotes: Mapping[str, AssetQuote],
    usd_try_rate: Decimal,
) -> ProfitLoss:
    """Aggregate unrealized P&L over non-currency holdings, in USD.

    Percent is 0 when the aggregate cost basis is 0.
    """
    _require_rate(usd_try_rate)

    current_value = ZERO
    cost_basis = ZERO
    for item, quote in _priced_holdings(holdings, quotes):
        if quote.category == CURRENCY_CATEGORY:
            continue
        current_value += to_usd(quote.price * item.quantity, quote.currency, usd_try_rate)
        cost_basis += to_usd(item.avg_cost * item.quantity, quote.currency, usd_try_rate)

    absolute = current_value - cost_basis
    percent = (absolute / cost_basis) * 100 if cost_basis > 0 else ZERO
    return ProfitLoss(absolute=absolute, percent=percent)


def resolve_usd_try_rate(quotes: Mapping[str, AssetQuote], fallback: Decimal) -> Decimal:
    """Return the live USD/TRY rate from the USD quote, or the fallback."""
    quote = quotes.get(VALUATION_CURRENCY)
    if quote is not None and quote.currency == HOME_CURRENCY and quote.price > 0:
        return quote.price
    return fallback
