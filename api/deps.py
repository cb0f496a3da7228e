"""Request-scoped access to the services wired in `api.main.create_app`."""

from __future__ import annotations

from typing import Optional

from fastapi import Header, HTTPException, Request

from core.config import Settings
from core.market_data.interfaces import PriceOracle
from core.orders.service import OrderService
from core.orders.sweep import OrderSweeper
from core.persistence.interfaces import LedgerStore
from core.settlement.settler import TradeSettler


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_store(request: Request) -> LedgerStore:
    return request.app.state.store


def get_oracle(request: Request) -> PriceOracle:
    return request.app.state.oracle


def get_settler(request: Request) -> TradeSettler:
    return request.app.state.settler


def get_order_service(request: Request) -> OrderService:
    return request.app.state.order_service


def get_sweeper(request: Request) -> OrderSweeper:
    return request.app.state.sweeper


def current_user_id(x_user_id: Optional[str] = Header(None, alias="X-User-Id")) -> str:
    """Authenticated user id, set by the upstream session layer."""
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(
            status_code=401,
            detail={"error": "unauthenticated", "message": "Please sign in"},
        )
    return x_user_id.strip()
