"""Limit order evaluation and settlement sweep.

One sweep:
1. loads PENDING orders oldest-first,
2. fetches one batch of quotes for their distinct symbols,
3. evaluates each order against its quote and settles the eligible ones.

Orders of different users settle concurrently (bounded by a semaphore);
orders of one user settle sequentially in creation order. A failing order
never aborts the rest of the batch.
"""

from __future__ import annotations

import asyncio
import logging
import time
from decimal import Decimal
from typing import Callable, Optional

from core.errors import LedgerError, OrderNotPending, QuoteUnavailable
from core.market_data.interfaces import PriceOracle
from core.orders.state_machine import ensure_transition
from core.persistence.interfaces import LedgerStore, LedgerTransaction
from core.settlement.settler import TradeSettler, new_id
from core.types import (
    AssetQuote,
    LimitOrder,
    Notification,
    OrderStatus,
    Quotes,
    Side,
    SweepResult,
)

logger = logging.getLogger(__name__)


def is_eligible(side: Side, price: Decimal, target_price: Decimal) -> bool:
    """BUY fills at or below target, SELL at or above; the boundary is eligible."""
    if side == "BUY":
        return price <= target_price
    return price >= target_price


def _fill_message(order: LimitOrder, quantity: Decimal, quote: AssetQuote) -> str:
    verb = "bought" if order.side == "BUY" else "sold"
    return f"{quantity} {order.symbol} {verb} at {quote.price} {quote.currency}."


class OrderSweeper:
    """Evaluates every PENDING order against live quotes and settles eligible ones."""

    def __init__(
        self,
        *,
        store: LedgerStore,
        oracle: PriceOracle,
        settler: TradeSettler,
        quote_timeout_seconds: float = 10.0,
        settlement_timeout_seconds: float = 5.0,
        max_concurrency: int = 8,
        id_factory: Callable[[], str] = new_id,
    ) -> None:
        self._store = store
        self._oracle = oracle
        self._settler = settler
        self._quote_timeout = quote_timeout_seconds
        self._settlement_timeout = settlement_timeout_seconds
        self._max_concurrency = max(1, max_concurrency)
        self._new_id = id_factory

    async def run(self) -> SweepResult:
        """Run one sweep and return its summary."""
        started = time.perf_counter()
        result = SweepResult()

        orders = list(await self._store.list_orders(status=OrderStatus.PENDING, oldest_first=True))
        if not orders:
            result.execution_time_ms = int((time.perf_counter() - started) * 1000)
            return result

        logger.info(f"Sweep started: {len(orders)} pending orders")

        quotes = await self._load_quotes(orders, result)
        if quotes is not None:
            by_user: dict[str, list[LimitOrder]] = {}
            for order in orders:
                by_user.setdefault(order.user_id, []).append(order)

            semaphore = asyncio.Semaphore(self._max_concurrency)

            async def run_user(user_orders: list[LimitOrder]) -> None:
                async with semaphore:
                    for order in user_orders:
                        await self._process_order(order, quotes, result)

            await asyncio.gather(*(run_user(batch) for batch in by_user.values()))

        result.execution_time_ms = int((time.perf_counter() - started) * 1000)
        logger.info(
            f"Sweep finished: processed={result.processed} completed={result.completed} "
            f"failed={result.failed} skipped={result.skipped} in {result.execution_time_ms}ms"
        )
        return result

    async def _load_quotes(self, orders: list[LimitOrder], result: SweepResult) -> Optional[Quotes]:
        symbols = sorted({order.symbol for order in orders})
        try:
            return await asyncio.wait_for(self._oracle.get_quotes(symbols), timeout=self._quote_timeout)
        except asyncio.TimeoutError:
            error = QuoteUnavailable(f"Price oracle timed out after {self._quote_timeout}s")
        except Exception as exc:
            error = QuoteUnavailable(f"Price oracle failed: {exc}")

        # Nothing can be evaluated; every order stays PENDING for the next sweep.
        logger.warning(error.message)
        result.processed += len(orders)
        result.skipped += len(orders)
        result.errors.append(error.message)
        return None

    async def _process_order(self, order: LimitOrder, quotes: Quotes, result: SweepResult) -> None:
        result.processed += 1
        try:
            await self._evaluate(order, quotes.get(order.symbol), result)
        except Exception as exc:
            # Recording the failure itself failed; leave the order PENDING.
            logger.exception(f"Order {order.id}: unexpected error during sweep")
            result.skipped += 1
            result.errors.append(f"Order {order.id}: {exc}")

    async def _evaluate(self, order: LimitOrder, quote: Optional[AssetQuote], result: SweepResult) -> None:
        if quote is None:
            logger.warning(f"Price not found for {order.symbol}; order {order.id} stays pending")
            result.skipped += 1
            result.errors.append(f"Price not found for {order.symbol}")
            return

        if not is_eligible(order.side, quote.price, order.target_price):
            result.skipped += 1
            return

        quantity = order.size.resolve(quote.price)
        if quantity <= 0:
            reason = f"Invalid quantity for order {order.id}"
            if await self._mark_failed(order, reason):
                result.failed += 1
                result.errors.append(reason)
            else:
                result.skipped += 1
            return

        async def claim(unit: LedgerTransaction) -> None:
            ensure_transition(order.status, OrderStatus.COMPLETED)
            if not await unit.transition_order(
                order.id, expected=OrderStatus.PENDING, target=OrderStatus.COMPLETED
            ):
                raise OrderNotPending(order.id)
            await unit.add_notification(
                Notification(
                    id=self._new_id(),
                    user_id=order.user_id,
                    title="Limit order filled",
                    message=_fill_message(order, quantity, quote),
                )
            )

        try:
            await asyncio.wait_for(
                self._settler.settle_trade(
                    order.user_id,
                    order.symbol,
                    quantity,
                    order.side,
                    quote.price,
                    quote=quote,
                    claim=claim,
                ),
                timeout=self._settlement_timeout,
            )
        except OrderNotPending:
            # Another sweep or a cancel got there first.
            logger.debug(f"Order {order.id} no longer pending; skipped")
            result.skipped += 1
            return
        except asyncio.TimeoutError:
            logger.warning(f"Order {order.id}: settlement timed out; retrying next sweep")
            result.skipped += 1
            result.errors.append(f"Order {order.id}: settlement timed out")
            return
        except LedgerError as exc:
            reason = exc.message
        except Exception as exc:
            logger.exception(f"Order {order.id}: unexpected settlement error")
            reason = str(exc) or exc.__class__.__name__
        else:
            logger.info(f"Order {order.id} completed: {order.side} {quantity} {order.symbol} @ {quote.price}")
            result.completed += 1
            return

        if await self._mark_failed(order, reason):
            logger.warning(f"Order {order.id} failed: {reason}")
            result.failed += 1
            result.errors.append(f"Order {order.id}: {reason}")
        else:
            result.skipped += 1

    async def _mark_failed(self, order: LimitOrder, reason: str) -> bool:
        """Move PENDING -> FAILED and notify the owner; False if the order already moved."""
        ensure_transition(order.status, OrderStatus.FAILED)
        async with self._store.transaction(order.user_id) as unit:
            moved = await unit.transition_order(
                order.id, expected=OrderStatus.PENDING, target=OrderStatus.FAILED, reason=reason
            )
            if moved:
                await unit.add_notification(
                    Notification(
                        id=self._new_id(),
                        user_id=order.user_id,
                        title="Limit order failed",
                        message=f"{order.side} {order.symbol} @ {order.target_price}: {reason}",
                    )
                )
        return moved
