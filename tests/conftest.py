"""Shared test fixtures for pytest.

Provides an in-memory store, a controllable price oracle and demo users used
across multiple test files.
"""

from __future__ import annotations

import asyncio
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from api.main import create_app
from core.config import Settings
from core.orders.service import OrderService
from core.orders.sweep import OrderSweeper
from core.settlement.settler import TradeSettler
from core.storage.memory import InMemoryLedgerStore
from core.types import AssetQuote, Holding, User

from tests.fakes import FakeOracle, quote


@pytest.fixture
def sample_quotes() -> dict[str, AssetQuote]:
    """Quotes covering each quote currency and category."""
    return {
        "BTC": quote("BTC", "89000"),
        "ETH": quote("ETH", "2000"),
        "AAPL": quote("AAPL", "200", currency="USD", category="stock"),
        "THYAO": quote("THYAO", "300", currency="TRY", category="stock"),
        "XAU": quote("XAU", "2000", currency="USD", category="commodity"),
        "USD": quote("USD", "34.4", currency="TRY", category="currency"),
        "USDT": quote("USDT", "34.4", currency="TRY", category="currency"),
        "EUR": quote("EUR", "37.4", currency="TRY", category="currency"),
    }


@pytest.fixture
def oracle(sample_quotes) -> FakeOracle:
    return FakeOracle(sample_quotes)


@pytest.fixture
def store() -> InMemoryLedgerStore:
    return InMemoryLedgerStore()


@pytest.fixture
def demo_user() -> User:
    """100000 TRY cash, 5000 USD, 5000 USDT and 2 ETH bought at 1800."""
    return User(
        id="user-1",
        balance=Decimal("100000"),
        holdings=(
            Holding("USD", Decimal("5000"), Decimal("0")),
            Holding("USDT", Decimal("5000"), Decimal("0")),
            Holding("ETH", Decimal("2"), Decimal("1800")),
        ),
        email="demo@example.com",
        name="Demo",
    )


@pytest.fixture
def settler(store, oracle) -> TradeSettler:
    return TradeSettler(store=store, oracle=oracle)


@pytest.fixture
def order_service(store, oracle) -> OrderService:
    return OrderService(store=store, oracle=oracle)


@pytest.fixture
def sweeper(store, oracle, settler) -> OrderSweeper:
    return OrderSweeper(
        store=store,
        oracle=oracle,
        settler=settler,
        quote_timeout_seconds=0.5,
        settlement_timeout_seconds=0.5,
    )


@pytest.fixture
def settings() -> Settings:
    return Settings(cron_secret="test-secret")


@pytest.fixture
def client(settings, store, oracle, demo_user):
    """TestClient over an app wired to the in-memory store and fake oracle."""
    asyncio.run(store.create_user(demo_user))
    app = create_app(settings=settings, store=store, oracle=oracle)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def auth() -> dict[str, str]:
    return {"X-User-Id": "user-1"}
