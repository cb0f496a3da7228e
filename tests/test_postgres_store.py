"""Integration tests for the PostgreSQL ledger store.

Requires DATABASE_URL to be set and PostgreSQL running.
"""

from __future__ import annotations

import asyncio
import os
from decimal import Decimal

import pytest
import pytest_asyncio
from sqlalchemy import text
from sqlalchemy.ext.asyncio import create_async_engine

from core.orders.sweep import OrderSweeper
from core.settlement.settler import TradeSettler
from core.storage.postgres import PostgresConfig, PostgresLedgerStore, normalize_database_url
from core.types import ByQuantity, Holding, LimitOrder, Notification, OrderStatus, User
from db.init_db import apply_schema

from tests.fakes import FakeOracle, quote


def _get_test_database_url() -> str:
    database_url = os.getenv("DATABASE_URL")
    if not database_url:
        pytest.skip("DATABASE_URL not set")

    # Verify asyncpg is importable (required for SQLAlchemy async engine)
    try:
        import asyncpg  # noqa: F401
    except ImportError:
        pytest.skip("asyncpg not installed - skipping async DB tests")

    return database_url


@pytest_asyncio.fixture
async def pg_store():
    """Fresh schema and empty tables per test."""
    database_url = _get_test_database_url()
    await apply_schema(database_url)

    engine = create_async_engine(normalize_database_url(database_url), echo=False)
    try:
        async with engine.begin() as conn:
            await conn.execute(
                text("TRUNCATE notifications, transactions, limit_orders, holdings, users CASCADE")
            )
    finally:
        await engine.dispose()

    store = PostgresLedgerStore(config=PostgresConfig(database_url=database_url))
    try:
        yield store
    finally:
        await store.close()


def _user() -> User:
    return User(
        id="pg-user",
        balance=Decimal("1000"),
        holdings=(Holding("USDT", Decimal("5000"), Decimal("0")),),
        email="pg@example.com",
    )


def _order(order_id: str = "pg-order") -> LimitOrder:
    return LimitOrder(
        id=order_id,
        user_id="pg-user",
        symbol="BTC",
        side="BUY",
        size=ByQuantity(Decimal("0.01")),
        target_price=Decimal("90000"),
    )


@pytest.mark.asyncio
async def test_user_round_trip(pg_store):
    created = await pg_store.create_user(_user())

    assert created.balance == Decimal("1000")
    assert created.holding("USDT").quantity == Decimal("5000")
    assert created.created_at is not None
    assert await pg_store.ping() is True


@pytest.mark.asyncio
async def test_unit_rolls_back_on_error(pg_store):
    await pg_store.create_user(_user())

    with pytest.raises(RuntimeError):
        async with pg_store.transaction("pg-user") as unit:
            user = await unit.get_user()
            await unit.save_user(User(id=user.id, balance=Decimal("0"), holdings=()))
            await unit.add_notification(Notification(id="n-1", user_id="pg-user", title="t", message="m"))
            raise RuntimeError("boom")

    user = await pg_store.get_user("pg-user")
    assert user.balance == Decimal("1000")
    assert user.holding("USDT") is not None
    assert await pg_store.list_notifications(user_id="pg-user") == []


@pytest.mark.asyncio
async def test_conditional_transition(pg_store):
    await pg_store.create_user(_user())
    await pg_store.create_order(_order())

    assert await pg_store.transition_order(
        "pg-order", expected=OrderStatus.PENDING, target=OrderStatus.CANCELLED
    )
    assert not await pg_store.transition_order(
        "pg-order", expected=OrderStatus.PENDING, target=OrderStatus.COMPLETED
    )
    assert (await pg_store.get_order("pg-order")).status is OrderStatus.CANCELLED
    assert await pg_store.count_orders(user_id="pg-user", status=OrderStatus.PENDING) == 0


@pytest.mark.asyncio
async def test_concurrent_sweeps_settle_once(pg_store):
    await pg_store.create_user(_user())
    await pg_store.create_order(_order())
    oracle = FakeOracle({"BTC": quote("BTC", "89000")})
    oracle.delay = 0.05
    settler = TradeSettler(store=pg_store, oracle=oracle)
    sweepers = [OrderSweeper(store=pg_store, oracle=oracle, settler=settler) for _ in range(2)]

    results = await asyncio.gather(*(s.run() for s in sweepers))

    assert sum(r.completed for r in results) == 1
    assert len(await pg_store.list_transactions(user_id="pg-user")) == 1
    user = await pg_store.get_user("pg-user")
    assert user.quantity_of("BTC") == Decimal("0.01")
    assert user.quantity_of("USDT") == Decimal("4110")
    assert (await pg_store.get_order("pg-order")).status is OrderStatus.COMPLETED
