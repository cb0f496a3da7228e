"""Tests for the limit order sweep."""

from __future__ import annotations

import asyncio
import random
from decimal import Decimal
from typing import Optional
from unittest.mock import AsyncMock

import pytest

from core.orders.sweep import OrderSweeper, is_eligible
from core.types import ByNotional, ByQuantity, Holding, LimitOrder, OrderStatus, User


def _order(
    order_id: str,
    symbol: str,
    side: str,
    target: str,
    *,
    quantity: Optional[str] = None,
    amount: Optional[str] = None,
    user_id: str = "user-1",
) -> LimitOrder:
    size = ByQuantity(Decimal(quantity)) if quantity is not None else ByNotional(Decimal(amount))
    return LimitOrder(
        id=order_id,
        user_id=user_id,
        symbol=symbol,
        side=side,
        size=size,
        target_price=Decimal(target),
    )


# ============================================================================
# Eligibility
# ============================================================================


def test_eligibility_boundaries():
    """BUY fills at or below target, SELL at or above."""
    assert is_eligible("BUY", Decimal("100"), Decimal("100"))
    assert is_eligible("BUY", Decimal("99.99"), Decimal("100"))
    assert not is_eligible("BUY", Decimal("100.01"), Decimal("100"))
    assert is_eligible("SELL", Decimal("100"), Decimal("100"))
    assert is_eligible("SELL", Decimal("100.01"), Decimal("100"))
    assert not is_eligible("SELL", Decimal("99.99"), Decimal("100"))


def test_eligibility_random_grid():
    rng = random.Random(1234)
    for _ in range(500):
        target = Decimal(rng.randint(1, 100000)) / 100
        price = target + Decimal(rng.randint(-500, 500)) / 100
        side = rng.choice(["BUY", "SELL"])

        expected = price <= target if side == "BUY" else price >= target
        assert is_eligible(side, price, target) is expected


def test_notional_quantity_rounds_down_to_step():
    """A notional order never costs more than its amount."""
    assert ByNotional(Decimal("890")).resolve(Decimal("89000")) == Decimal("0.0100")
    assert ByNotional(Decimal("8884.8")).resolve(Decimal("181391.53")) == Decimal("0.0489")
    assert ByNotional(Decimal("1")).resolve(Decimal("89000")) == Decimal("0")
    assert ByNotional(Decimal("1")).resolve(Decimal("0")) == Decimal("0")

    rng = random.Random(99)
    for _ in range(500):
        amount = Decimal(rng.randint(1, 10_000_000)) / 100
        price = Decimal(rng.randint(1, 20_000_000)) / 100
        quantity = ByNotional(amount).resolve(price)
        assert quantity * price <= amount
        assert quantity == quantity.quantize(Decimal("0.0001"))


# ============================================================================
# Sweep outcomes
# ============================================================================


class TestSweepOutcomes:
    """Each PENDING order ends COMPLETED, FAILED, or stays PENDING."""

    @pytest.mark.asyncio
    async def test_no_pending_orders(self, sweeper):
        result = await sweeper.run()

        assert result.processed == 0
        assert result.errors == []

    @pytest.mark.asyncio
    async def test_eligible_buy_completes(self, store, sweeper, demo_user):
        await store.create_user(demo_user)
        await store.create_order(_order("o-1", "BTC", "BUY", "90000", quantity="0.01"))

        result = await sweeper.run()

        assert (result.processed, result.completed, result.failed, result.skipped) == (1, 1, 0, 0)
        order = await store.get_order("o-1")
        assert order.status is OrderStatus.COMPLETED

        [tx] = await store.list_transactions(user_id="user-1")
        assert tx.type == "BUY"
        assert tx.price == Decimal("89000")
        assert tx.total == Decimal("890.00")

        user = await store.get_user("user-1")
        assert user.quantity_of("BTC") == Decimal("0.01")
        assert user.quantity_of("USDT") == Decimal("4110.00")

        [note] = await store.list_notifications(user_id="user-1")
        assert note.title == "Limit order filled"
        assert not note.read

    @pytest.mark.asyncio
    async def test_fills_at_exact_target(self, store, sweeper, demo_user):
        await store.create_user(demo_user)
        await store.create_order(_order("o-1", "ETH", "SELL", "2000", quantity="1"))

        result = await sweeper.run()

        assert result.completed == 1
        user = await store.get_user("user-1")
        assert user.quantity_of("ETH") == Decimal("1")
        assert user.quantity_of("USDT") == Decimal("7000")

    @pytest.mark.asyncio
    async def test_not_eligible_stays_pending(self, store, sweeper, demo_user):
        await store.create_user(demo_user)
        await store.create_order(_order("o-1", "BTC", "BUY", "80000", quantity="0.01"))

        result = await sweeper.run()

        assert (result.processed, result.skipped) == (1, 1)
        assert result.errors == []
        assert (await store.get_order("o-1")).status is OrderStatus.PENDING
        assert await store.list_transactions(user_id="user-1") == []

    @pytest.mark.asyncio
    async def test_insufficient_holdings_fails_order(self, store, sweeper):
        await store.create_user(
            User(id="user-1", balance=Decimal("0"), holdings=(Holding("AAPL", Decimal("5"), Decimal("150")),))
        )
        await store.create_order(_order("o-1", "AAPL", "SELL", "150", quantity="10"))

        result = await sweeper.run()

        assert (result.processed, result.failed) == (1, 1)
        order = await store.get_order("o-1")
        assert order.status is OrderStatus.FAILED
        assert "Insufficient AAPL holdings" in order.failure_reason

        user = await store.get_user("user-1")
        assert user.holding("AAPL") == Holding("AAPL", Decimal("5"), Decimal("150"))
        assert await store.list_transactions(user_id="user-1") == []

        [note] = await store.list_notifications(user_id="user-1")
        assert note.title == "Limit order failed"

    @pytest.mark.asyncio
    async def test_missing_quote_stays_pending_across_sweeps(self, store, sweeper, demo_user):
        await store.create_user(demo_user)
        await store.create_order(_order("o-1", "NOPE", "BUY", "10", quantity="1"))

        for _ in range(3):
            result = await sweeper.run()
            assert (result.processed, result.skipped) == (1, 1)
            assert result.errors == ["Price not found for NOPE"]

        assert (await store.get_order("o-1")).status is OrderStatus.PENDING

    @pytest.mark.asyncio
    async def test_notional_order_resolves_quantity_at_fill(self, store, sweeper, demo_user):
        await store.create_user(demo_user)
        await store.create_order(_order("o-1", "BTC", "BUY", "90000", amount="890"))

        result = await sweeper.run()

        assert result.completed == 1
        [tx] = await store.list_transactions(user_id="user-1")
        assert tx.quantity == Decimal("0.01")
        assert tx.total == Decimal("890")

    @pytest.mark.asyncio
    async def test_notional_order_for_whole_balance_completes(self, store, oracle, sweeper, order_service):
        await store.create_user(
            User(id="user-1", balance=Decimal("0"), holdings=(Holding("USDT", Decimal("8884.8"), Decimal("0")),))
        )
        oracle.set_price("BTC", "181391.53")
        order = await order_service.create_order(
            "user-1", symbol="BTC", side="BUY", target_price=Decimal("200000"), amount=Decimal("8884.8")
        )

        result = await sweeper.run()

        assert (result.completed, result.failed) == (1, 0)
        assert (await store.get_order(order.id)).status is OrderStatus.COMPLETED
        [tx] = await store.list_transactions(user_id="user-1")
        assert tx.quantity == Decimal("0.0489")
        assert tx.total <= Decimal("8884.8")
        user = await store.get_user("user-1")
        assert user.quantity_of("BTC") == Decimal("0.0489")
        assert user.quantity_of("USDT") == Decimal("8884.8") - tx.total

    @pytest.mark.asyncio
    async def test_notional_below_one_step_fails(self, store, sweeper, demo_user):
        await store.create_user(demo_user)
        await store.create_order(_order("o-1", "BTC", "BUY", "90000", amount="1"))

        result = await sweeper.run()

        assert result.failed == 1
        assert (await store.get_order("o-1")).failure_reason == "Invalid quantity for order o-1"
        assert await store.list_transactions(user_id="user-1") == []

    @pytest.mark.asyncio
    async def test_zero_price_notional_fails(self, store, sweeper, oracle, demo_user):
        await store.create_user(demo_user)
        oracle.set_price("BTC", "0")
        await store.create_order(_order("o-1", "BTC", "BUY", "90000", amount="890"))

        result = await sweeper.run()

        assert result.failed == 1
        order = await store.get_order("o-1")
        assert order.status is OrderStatus.FAILED
        assert order.failure_reason == "Invalid quantity for order o-1"

    @pytest.mark.asyncio
    async def test_one_failure_does_not_abort_batch(self, store, sweeper, demo_user):
        await store.create_user(demo_user)
        await store.create_user(User(id="user-2", balance=Decimal("0")))
        await store.create_order(_order("o-1", "THYAO", "BUY", "300", quantity="1", user_id="user-2"))
        await store.create_order(_order("o-2", "THYAO", "BUY", "300", quantity="1"))

        result = await sweeper.run()

        assert (result.processed, result.completed, result.failed) == (2, 1, 1)
        assert (await store.get_order("o-1")).status is OrderStatus.FAILED
        assert (await store.get_order("o-2")).status is OrderStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_same_user_orders_settle_oldest_first(self, store, sweeper):
        await store.create_user(User(id="user-1", balance=Decimal("400")))
        await store.create_order(_order("o-1", "THYAO", "BUY", "300", quantity="1"))
        await store.create_order(_order("o-2", "THYAO", "BUY", "300", quantity="1"))

        result = await sweeper.run()

        assert (result.completed, result.failed) == (1, 1)
        assert (await store.get_order("o-1")).status is OrderStatus.COMPLETED
        assert (await store.get_order("o-2")).status is OrderStatus.FAILED
        assert (await store.get_user("user-1")).balance == Decimal("100")

    @pytest.mark.asyncio
    async def test_cancelled_order_is_ignored(self, store, sweeper, demo_user):
        await store.create_user(demo_user)
        await store.create_order(_order("o-1", "BTC", "BUY", "90000", quantity="0.01"))
        await store.transition_order("o-1", expected=OrderStatus.PENDING, target=OrderStatus.CANCELLED)

        result = await sweeper.run()

        assert result.processed == 0
        assert (await store.get_order("o-1")).status is OrderStatus.CANCELLED

    @pytest.mark.asyncio
    async def test_unexpected_settlement_error_fails_order(self, store, sweeper, settler, demo_user):
        await store.create_user(demo_user)
        await store.create_order(_order("o-1", "BTC", "BUY", "90000", quantity="0.01"))
        settler.settle_trade = AsyncMock(side_effect=RuntimeError("disk full"))

        result = await sweeper.run()

        assert result.failed == 1
        assert (await store.get_order("o-1")).failure_reason == "disk full"


class TestSweepConcurrency:
    """Overlapping sweeps never settle an order twice."""

    @pytest.mark.asyncio
    async def test_concurrent_sweeps_settle_once(self, store, oracle, settler, demo_user):
        await store.create_user(demo_user)
        await store.create_order(_order("o-1", "BTC", "BUY", "90000", quantity="0.01"))
        # Both sweeps load the order before either settles it.
        oracle.delay = 0.01
        sweepers = [OrderSweeper(store=store, oracle=oracle, settler=settler) for _ in range(2)]

        results = await asyncio.gather(*(s.run() for s in sweepers))

        assert sum(r.completed for r in results) == 1
        assert sum(r.skipped for r in results) == 1
        assert len(await store.list_transactions(user_id="user-1")) == 1
        assert len(await store.list_notifications(user_id="user-1")) == 1
        assert (await store.get_user("user-1")).quantity_of("BTC") == Decimal("0.01")

    @pytest.mark.asyncio
    async def test_cancel_during_sweep_wins_or_loses_cleanly(self, store, oracle, settler, order_service, demo_user):
        await store.create_user(demo_user)
        await store.create_order(_order("o-1", "BTC", "BUY", "90000", quantity="0.01"))
        oracle.delay = 0.01
        sweeper = OrderSweeper(store=store, oracle=oracle, settler=settler)

        sweep_task = asyncio.ensure_future(sweeper.run())
        await asyncio.sleep(0)
        await order_service.cancel_order("user-1", "o-1")
        result = await sweep_task

        assert (await store.get_order("o-1")).status is OrderStatus.CANCELLED
        assert result.completed == 0
        assert result.skipped == 1
        assert await store.list_transactions(user_id="user-1") == []


class TestSweepTimeouts:
    @pytest.mark.asyncio
    async def test_oracle_timeout_skips_everything(self, store, oracle, settler, demo_user):
        await store.create_user(demo_user)
        await store.create_order(_order("o-1", "BTC", "BUY", "90000", quantity="0.01"))
        await store.create_order(_order("o-2", "ETH", "SELL", "1000", quantity="1"))
        oracle.delay = 1.0
        sweeper = OrderSweeper(store=store, oracle=oracle, settler=settler, quote_timeout_seconds=0.05)

        result = await sweeper.run()

        assert (result.processed, result.skipped, result.completed) == (2, 2, 0)
        assert len(result.errors) == 1
        assert "timed out" in result.errors[0]
        assert (await store.get_order("o-1")).status is OrderStatus.PENDING

    @pytest.mark.asyncio
    async def test_oracle_error_skips_everything(self, store, oracle, settler, demo_user):
        await store.create_user(demo_user)
        await store.create_order(_order("o-1", "BTC", "BUY", "90000", quantity="0.01"))
        oracle.error = ConnectionError("feed down")
        sweeper = OrderSweeper(store=store, oracle=oracle, settler=settler)

        result = await sweeper.run()

        assert (result.processed, result.skipped) == (1, 1)
        assert "feed down" in result.errors[0]

    @pytest.mark.asyncio
    async def test_settlement_timeout_leaves_order_pending(self, store, oracle, settler, demo_user):
        await store.create_user(demo_user)
        await store.create_order(_order("o-1", "BTC", "BUY", "90000", quantity="0.01"))

        async def slow_settle(*args, **kwargs):
            await asyncio.sleep(1.0)

        settler.settle_trade = slow_settle
        sweeper = OrderSweeper(store=store, oracle=oracle, settler=settler, settlement_timeout_seconds=0.05)

        result = await sweeper.run()

        assert (result.processed, result.skipped) == (1, 1)
        assert result.errors == ["Order o-1: settlement timed out"]
        assert (await store.get_order("o-1")).status is OrderStatus.PENDING
