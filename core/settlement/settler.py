from __future__ import annotations

import logging
import uuid
from dataclasses import replace
from decimal import ROUND_HALF_UP, Decimal
from typing import Awaitable, Callable, Optional

from core.errors import (
    InsufficientFunds,
    InsufficientHoldings,
    UnknownAsset,
    ValidationError,
)
from core.market_data.interfaces import PriceOracle
from core.persistence.interfaces import LedgerStore, LedgerTransaction
from core.types import (
    HOME_CURRENCY,
    QUANTITY_STEP,
    ZERO,
    AssetQuote,
    Holding,
    Side,
    Transaction,
    User,
)
from core.valuation import available_balance

logger = logging.getLogger(__name__)

# Holdings below this after a SELL are removed.
DUST_THRESHOLD = Decimal("0.00001")

ClaimHook = Callable[[LedgerTransaction], Awaitable[None]]


def round_quantity(quantity: Decimal) -> Decimal:
    """Round a user-entered quantity to 4 decimal places."""
    return quantity.quantize(QUANTITY_STEP, rounding=ROUND_HALF_UP)


def new_id() -> str:
    return uuid.uuid4().hex


def _replace_holding(user: User, symbol: str, holding: Optional[Holding]) -> User:
    """Return `user` with `symbol`'s holding replaced (or removed when None)."""
    kept = tuple(h for h in user.holdings if h.symbol != symbol)
    return replace(user, holdings=kept + (holding,) if holding is not None else kept)


def _with_balance(user: User, balance: Decimal) -> User:
    return replace(user, balance=balance)


def _debit(user: User, currency: str, amount: Decimal) -> User:
    if currency == HOME_CURRENCY:
        return _with_balance(user, user.balance - amount)
    held = user.holding(currency)
    if held is None:
        raise InsufficientFunds(currency, ZERO, amount)
    remaining = held.quantity - amount
    if remaining < DUST_THRESHOLD:
        return _replace_holding(user, currency, None)
    return _replace_holding(user, currency, Holding(currency, remaining, held.avg_cost))


def _credit(user: User, currency: str, amount: Decimal) -> User:
    if currency == HOME_CURRENCY:
        return _with_balance(user, user.balance + amount)
    held = user.holding(currency)
    # Proceeds do not change the funding currency's cost basis.
    avg_cost = held.avg_cost if held is not None else ZERO
    quantity = held.quantity + amount if held is not None else amount
    return _replace_holding(user, currency, Holding(currency, quantity, avg_cost))


def apply_buy(
    user: User, symbol: str, quantity: Decimal, price: Decimal, funding_currency: str
) -> User:
    """Debit `quantity * price` from the funding currency and add to the holding.

    Raises:
        InsufficientFunds: If the funding currency cannot cover the cost
    """
    total = quantity * price
    available = available_balance(user, funding_currency)
    if available < total:
        raise InsufficientFunds(funding_currency, available, total)

    user = _debit(user, funding_currency, total)

    position = user.holding(symbol)
    if position is None:
        return _replace_holding(user, symbol, Holding(symbol, quantity, price))

    # Adding to position - update average cost
    new_qty = position.quantity + quantity
    total_cost = (position.avg_cost * position.quantity) + (price * quantity)
    return _replace_holding(user, symbol, Holding(symbol, new_qty, total_cost / new_qty))


def apply_sell(
    user: User, symbol: str, quantity: Decimal, price: Decimal, funding_currency: str
) -> User:
    """Remove `quantity` from the holding and credit `quantity * price`.

    Average cost is unchanged; a remainder below the dust threshold removes
    the holding.

    Raises:
        InsufficientHoldings: If the user holds less than `quantity`
    """
    position = user.holding(symbol)
    owned = position.quantity if position is not None else ZERO
    if position is None or owned < quantity:
        raise InsufficientHoldings(symbol, owned, quantity)

    remaining = owned - quantity
    if remaining < DUST_THRESHOLD:
        user = _replace_holding(user, symbol, None)
    else:
        user = _replace_holding(user, symbol, Holding(symbol, remaining, position.avg_cost))

    return _credit(user, funding_currency, quantity * price)


class TradeSettler:
    """Atomic balance/holdings mutation behind every trade.

    Used by immediate market trades, by the limit-order sweep and by demo
    deposits. Every mutation runs inside one `LedgerStore.transaction(user_id)`
    unit; the oracle is never called while that unit is open.
    """

    def __init__(
        self,
        *,
        store: LedgerStore,
        oracle: PriceOracle,
        refill_threshold: Decimal = Decimal("10000"),
        refill_amount: Decimal = Decimal("90000"),
        id_factory: Callable[[], str] = new_id,
    ) -> None:
        self._store = store
        self._oracle = oracle
        self._refill_threshold = refill_threshold
        self._refill_amount = refill_amount
        self._new_id = id_factory

    async def _resolve_quote(self, symbol: str) -> AssetQuote:
        quotes = await self._oracle.get_quotes([symbol])
        quote = quotes.get(symbol)
        if quote is None:
            raise UnknownAsset(symbol)
        return quote

    async def settle_trade(
        self,
        user_id: str,
        symbol: str,
        quantity: Decimal,
        side: Side,
        execution_price: Decimal,
        *,
        quote: Optional[AssetQuote] = None,
        claim: Optional[ClaimHook] = None,
    ) -> Transaction:
        """Settle one trade for one user.

        Args:
            user_id: Owner of the balance/holdings to mutate
            symbol: Traded asset
            quantity: Units to trade (> 0)
            side: BUY or SELL
            execution_price: Price per unit in the asset's quote currency
            quote: Already-fetched quote for `symbol` (skips the oracle call)
            claim: Awaited first inside the atomic unit; raising aborts the
                whole unit (used by the sweep to claim the order)

        Returns:
            The appended Transaction

        Raises:
            ValidationError: Non-positive quantity/price or unknown side
            UnknownAsset: The oracle cannot price `symbol`
            InsufficientFunds / InsufficientHoldings: Preconditions failed
            OrderNotPending: Raised by the sweep's claim when it loses a race
        """
        symbol = symbol.upper()
        if side not in ("BUY", "SELL"):
            raise ValidationError(f"Invalid side: {side}")
        if quantity <= 0:
            raise ValidationError("Quantity must be positive")
        if execution_price <= 0:
            raise ValidationError("Execution price must be positive")

        if quote is None:
            quote = await self._resolve_quote(symbol)
        funding_currency = quote.currency
        if funding_currency == symbol:
            raise ValidationError(f"Cannot trade {symbol} against itself")

        async with self._store.transaction(user_id) as unit:
            if claim is not None:
                await claim(unit)

            user = await unit.get_user()
            if side == "BUY":
                user = apply_buy(user, symbol, quantity, execution_price, funding_currency)
            else:
                user = apply_sell(user, symbol, quantity, execution_price, funding_currency)
            await unit.save_user(user)

            transaction = await unit.append_transaction(
                Transaction(
                    id=self._new_id(),
                    user_id=user_id,
                    type=side,
                    symbol=symbol,
                    quantity=quantity,
                    price=execution_price,
                    total=quantity * execution_price,
                    currency=funding_currency,
                )
            )

        logger.info(
            f"Settled {side} {quantity} {symbol} @ {execution_price} {funding_currency} for user {user_id}"
        )
        return transaction

    async def execute_market_trade(
        self, user_id: str, symbol: str, quantity: Decimal, side: Side
    ) -> Transaction:
        """Trade immediately at the server-side price.

        The client never supplies a price. Quantity is rounded to 4 decimals.
        """
        quantity = round_quantity(quantity)
        if quantity <= 0:
            raise ValidationError("Quantity must be at least 0.0001")

        symbol = symbol.upper()
        quote = await self._resolve_quote(symbol)
        return await self.settle_trade(user_id, symbol, quantity, side, quote.price, quote=quote)

    async def deposit(self, user_id: str, amount: Decimal) -> Transaction:
        """Credit home-currency cash and record a DEPOSIT."""
        if amount <= 0:
            raise ValidationError("Deposit amount must be positive")

        async with self._store.transaction(user_id) as unit:
            return await self._deposit_in(unit, amount)

    async def refill_balance(self, user_id: str) -> Transaction:
        """Demo top-up: add the refill amount when cash is below the threshold."""
        async with self._store.transaction(user_id) as unit:
            user = await unit.get_user()
            if user.balance >= self._refill_threshold:
                raise ValidationError(
                    f"Refill is only available when balance is below {self._refill_threshold:.2f} {HOME_CURRENCY}"
                )
            return await self._deposit_in(unit, self._refill_amount)

    async def _deposit_in(self, unit: LedgerTransaction, amount: Decimal) -> Transaction:
        user = await unit.get_user()
        await unit.save_user(_with_balance(user, user.balance + amount))
        transaction = await unit.append_transaction(
            Transaction(
                id=self._new_id(),
                user_id=user.id,
                type="DEPOSIT",
                symbol=HOME_CURRENCY,
                quantity=amount,
                price=Decimal("1"),
                total=amount,
                currency=HOME_CURRENCY,
            )
        )
        logger.info(f"Deposited {amount} {HOME_CURRENCY} for user {user.id}")
        return transaction
