"""FastAPI application for limit orders, market trades and wallet views.

This module wires the HTTP surface:
- GET/POST /api/cron/process-orders - Run one limit-order sweep (Bearer CRON_SECRET)
- POST /api/orders - Place a limit order
- GET /api/orders - List the caller's orders with live prices
- GET /api/orders/pending/count - Number of PENDING orders
- DELETE /api/orders/{order_id} - Cancel a PENDING order
- POST /api/trades - Immediate market trade
- GET /api/wallet - Net worth and holdings
- POST /api/wallet/refill - Demo top-up
- GET /api/transactions, /api/notifications
- GET /health - Store and price oracle reachability

Requirements:
- DATABASE_URL selects PostgreSQL; without it an in-memory store is used
- Callers are identified by the X-User-Id header set by the session layer
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from api.routes import cron, health, orders, wallet
from core.config import Settings
from core.errors import LedgerError
from core.market_data.interfaces import PriceOracle
from core.market_data.oracle import build_default_oracle
from core.orders.service import OrderService
from core.orders.sweep import OrderSweeper
from core.persistence.interfaces import LedgerStore
from core.settlement.settler import TradeSettler
from core.storage import build_store

logger = logging.getLogger(__name__)

ERROR_STATUS: dict[str, int] = {
    "validation_error": 400,
    "unknown_asset": 400,
    "insufficient_funds": 400,
    "insufficient_holdings": 400,
    "settlement_error": 400,
    "unauthorized": 403,
    "not_found": 404,
    "order_not_pending": 409,
    "invalid_transition": 409,
    "configuration_error": 500,
    "quote_unavailable": 503,
}


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[LedgerStore] = None,
    oracle: Optional[PriceOracle] = None,
) -> FastAPI:
    """Build the application.

    Args:
        settings: Defaults to `Settings.from_env()`
        store: Defaults to PostgreSQL when DATABASE_URL is set, else in-memory
        oracle: Defaults to CoinGecko + TCMB + simulated market quotes

    Returns:
        Configured FastAPI app with services on `app.state`.
    """
    settings = settings or Settings.from_env()
    store = store if store is not None else build_store(settings.database_url)
    if oracle is None:
        oracle = build_default_oracle(
            coingecko_api_key=settings.coingecko_api_key,
            timeout_seconds=settings.quote_timeout_seconds,
            cache_ttl_seconds=settings.quote_cache_ttl_seconds,
        )

    settler = TradeSettler(
        store=store,
        oracle=oracle,
        refill_threshold=settings.refill_threshold,
        refill_amount=settings.refill_amount,
    )

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        yield
        close_oracle = getattr(oracle, "close", None)
        if close_oracle is not None:
            await close_oracle()
        await store.close()
        logger.info("Shutdown complete")

    app = FastAPI(
        title="Ledger API",
        description="API for limit orders, market trades, wallet valuation and the order sweep",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.store = store
    app.state.oracle = oracle
    app.state.settler = settler
    app.state.order_service = OrderService(store=store, oracle=oracle)
    app.state.sweeper = OrderSweeper(
        store=store,
        oracle=oracle,
        settler=settler,
        quote_timeout_seconds=settings.quote_timeout_seconds,
        settlement_timeout_seconds=settings.settlement_timeout_seconds,
        max_concurrency=settings.sweep_max_concurrency,
    )

    app.include_router(health.router)
    app.include_router(cron.router)
    app.include_router(orders.router)
    app.include_router(wallet.router)

    @app.exception_handler(LedgerError)
    async def ledger_exception_handler(_request: Request, exc: LedgerError) -> JSONResponse:
        status_code = ERROR_STATUS.get(exc.code, 400)
        if status_code >= 500:
            logger.error(f"{exc.code}: {exc.message}")
        return JSONResponse(
            status_code=status_code,
            content={"detail": {"error": exc.code, "message": exc.message}},
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(_request: Request, exc: Exception) -> JSONResponse:
        """Global exception handler to ensure consistent error responses."""
        logger.exception(f"Unhandled error: {exc}")
        return JSONResponse(
            status_code=500,
            content={
                "error": "internal_server_error",
                "message": "An unexpected error occurred",
            },
        )

    return app


app = create_app()
