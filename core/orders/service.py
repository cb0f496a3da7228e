from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Callable, Optional

from core.errors import (
    InsufficientFunds,
    InsufficientHoldings,
    OrderNotFound,
    OrderNotPending,
    UnauthorizedAccess,
    UnknownAsset,
    UserNotFound,
    ValidationError,
)
from core.market_data.interfaces import PriceOracle
from core.orders.state_machine import ensure_transition
from core.persistence.interfaces import LedgerStore
from core.settlement.settler import new_id, round_quantity
from core.types import (
    ZERO,
    ByNotional,
    ByQuantity,
    LimitOrder,
    OrderSize,
    OrderStatus,
    QuoteCurrency,
)
from core.valuation import available_balance

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OrderView:
    """An order annotated with the live price of its symbol (best-effort)."""

    order: LimitOrder
    current_price: Decimal
    currency: Optional[QuoteCurrency]


class OrderService:
    """Create, cancel and list limit orders on behalf of a user."""

    def __init__(
        self,
        *,
        store: LedgerStore,
        oracle: PriceOracle,
        id_factory: Callable[[], str] = new_id,
    ) -> None:
        self._store = store
        self._oracle = oracle
        self._new_id = id_factory

    async def create_order(
        self,
        user_id: str,
        *,
        symbol: str,
        side: str,
        target_price: Decimal,
        quantity: Optional[Decimal] = None,
        amount: Optional[Decimal] = None,
    ) -> LimitOrder:
        """Validate and persist a PENDING order.

        Exactly one of `quantity` (units, rounded to 4 decimals) or `amount`
        (cash in the asset's quote currency) must be given. Funds are checked
        at the target price but not reserved; the sweep re-checks at fill time.

        Raises:
            ValidationError: Bad symbol/side/price/size
            UnknownAsset: The oracle cannot price `symbol`
            UserNotFound: No such user
            InsufficientFunds / InsufficientHoldings: Not enough to cover the order
        """
        symbol = (symbol or "").strip().upper()
        if not symbol:
            raise ValidationError("Symbol is required")
        if side not in ("BUY", "SELL"):
            raise ValidationError(f"Invalid side: {side}")
        if target_price is None or target_price <= 0:
            raise ValidationError("Target price must be greater than 0")

        size = self._build_size(quantity, amount)

        quote = (await self._oracle.get_quotes([symbol])).get(symbol)
        if quote is None:
            raise UnknownAsset(symbol)
        if quote.currency == symbol:
            raise ValidationError(f"Cannot trade {symbol} against itself")

        if size.resolve(target_price) <= 0:
            raise ValidationError(f"Amount is too small to trade at least 0.0001 {symbol} at the target price")

        user = await self._store.get_user(user_id)
        if user is None:
            raise UserNotFound(user_id)

        if side == "BUY":
            cost = size.quantity * target_price if isinstance(size, ByQuantity) else size.amount
            funds = available_balance(user, quote.currency)
            if funds < cost:
                raise InsufficientFunds(quote.currency, funds, cost)
        else:
            needed = size.resolve(target_price)
            owned = user.quantity_of(symbol)
            if owned < needed:
                raise InsufficientHoldings(symbol, owned, needed)

        order = await self._store.create_order(
            LimitOrder(
                id=self._new_id(),
                user_id=user_id,
                symbol=symbol,
                side=side,  # type: ignore[arg-type]
                size=size,
                target_price=target_price,
            )
        )
        logger.info(f"Limit order {order.id} created: {side} {symbol} @ {target_price} for user {user_id}")
        return order

    @staticmethod
    def _build_size(quantity: Optional[Decimal], amount: Optional[Decimal]) -> OrderSize:
        if quantity is not None and amount is None:
            if quantity <= 0:
                raise ValidationError("Quantity must be greater than 0")
            rounded = round_quantity(quantity)
            if rounded <= 0:
                raise ValidationError("Quantity must be at least 0.0001")
            return ByQuantity(rounded)
        if amount is not None and quantity is None:
            if amount <= 0:
                raise ValidationError("Amount must be greater than 0")
            return ByNotional(amount)
        raise ValidationError("Provide exactly one of quantity or amount")

    async def cancel_order(self, user_id: str, order_id: str) -> LimitOrder:
        """Cancel the caller's PENDING order.

        Raises:
            OrderNotFound: Unknown id
            UnauthorizedAccess: The order belongs to someone else
            OrderNotPending: The order already completed, failed or was cancelled
        """
        order = await self._store.get_order(order_id)
        if order is None:
            raise OrderNotFound(order_id)
        if order.user_id != user_id:
            raise UnauthorizedAccess("You are not allowed to cancel this order")
        if order.status is not OrderStatus.PENDING:
            raise OrderNotPending(order_id, order.status.value)

        ensure_transition(order.status, OrderStatus.CANCELLED)
        moved = await self._store.transition_order(
            order_id, expected=OrderStatus.PENDING, target=OrderStatus.CANCELLED
        )
        current = await self._store.get_order(order_id)
        if current is None:
            raise OrderNotFound(order_id)
        if not moved:
            raise OrderNotPending(order_id, current.status.value)

        logger.info(f"Limit order {order_id} cancelled by user {user_id}")
        return current

    async def list_orders(self, user_id: str, *, status: Optional[OrderStatus] = None) -> list[OrderView]:
        """The caller's orders, newest first, with live prices where available."""
        orders = list(await self._store.list_orders(user_id=user_id, status=status))
        if not orders:
            return []

        try:
            quotes = await self._oracle.get_quotes(sorted({o.symbol for o in orders}))
        except Exception as exc:
            logger.warning(f"Quotes unavailable for order listing: {exc}")
            quotes = {}

        views = []
        for order in orders:
            quote = quotes.get(order.symbol)
            views.append(
                OrderView(
                    order=order,
                    current_price=quote.price if quote is not None else ZERO,
                    currency=quote.currency if quote is not None else None,
                )
            )
        return views

    async def pending_count(self, user_id: str) -> int:
        return await self._store.count_orders(user_id=user_id, status=OrderStatus.PENDING)
