"""Per-holding valuation rows and quote-currency balances."""

from __future__ import annotations

from decimal import Decimal
from typing import Iterable, Mapping

from core.types import (
    CURRENCY_SYMBOLS,
    HOME_CURRENCY,
    ZERO,
    AssetQuote,
    Holding,
    HoldingValuation,
    User,
)


def available_balance(user: User, quote_currency: str) -> Decimal:
    """Funds a user can spend on a BUY quoted in `quote_currency`.

    TRY trades settle against the cash balance; USD and USDT trades settle
    against the holding of the same symbol.
    """
    if quote_currency == HOME_CURRENCY:
        return user.balance
    return user.quantity_of(quote_currency)


def value_holdings(
    holdings: Iterable[Holding],
    quotes: Mapping[str, AssetQuote],
    *,
    include_cash: bool = False,
) -> list[HoldingValuation]:
    """Annotate holdings with live prices and P&L in their quote currency.

    A missing quote renders as zero price/value rather than failing.
    """
    rows: list[HoldingValuation] = []
    for item in holdings:
        if not include_cash and item.symbol in CURRENCY_SYMBOLS:
            continue

        quote = quotes.get(item.symbol)
        price = quote.price if quote is not None else ZERO
        current_value = item.quantity * price
        cost_basis = item.quantity * item.avg_cost
        profit_loss = current_value - cost_basis if quote is not None else ZERO
        percent = (profit_loss / cost_basis) * 100 if cost_basis > 0 and quote is not None else ZERO

        rows.append(
            HoldingValuation(
                symbol=item.symbol,
                name=quote.name if quote is not None else None,
                quantity=item.quantity,
                avg_cost=item.avg_cost,
                current_price=price,
                current_value=current_value,
                profit_loss=profit_loss,
                profit_loss_percent=percent,
                category=quote.category if quote is not None else None,
                currency=quote.currency if quote is not None else None,
                change_percent_24h=quote.change_percent if quote is not None else None,
            )
        )
    return rows
