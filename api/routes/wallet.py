"""Wallet, market trades, transaction history and notifications."""

from __future__ import annotations

from dataclasses import asdict
from datetime import datetime
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query
from pydantic import BaseModel, Field

from api.deps import current_user_id, get_oracle, get_settings, get_settler, get_store
from core.config import Settings
from core.errors import UserNotFound
from core.market_data.interfaces import PriceOracle
from core.persistence.interfaces import LedgerStore
from core.settlement.settler import TradeSettler
from core.types import VALUATION_CURRENCY, Notification, Transaction
from core.valuation import compute_net_worth, compute_profit_loss, resolve_usd_try_rate, value_holdings

router = APIRouter(prefix="/api", tags=["wallet"])


class TradeRequest(BaseModel):
    """Immediate market trade; the price is always taken server-side."""

    symbol: str = Field(..., min_length=1)
    side: str = Field(..., description="BUY or SELL")
    quantity: Decimal


class TransactionResponse(BaseModel):
    id: str
    type: str
    symbol: str
    quantity: Decimal
    price: Decimal
    total: Decimal
    currency: str
    date: datetime

    @classmethod
    def from_transaction(cls, tx: Transaction) -> "TransactionResponse":
        return cls(
            id=tx.id,
            type=tx.type,
            symbol=tx.symbol,
            quantity=tx.quantity,
            price=tx.price,
            total=tx.total,
            currency=tx.currency,
            date=tx.date,
        )


class NotificationResponse(BaseModel):
    id: str
    title: str
    message: str
    read: bool
    created_at: datetime

    @classmethod
    def from_notification(cls, item: Notification) -> "NotificationResponse":
        return cls(id=item.id, title=item.title, message=item.message, read=item.read, created_at=item.created_at)


class HoldingResponse(BaseModel):
    symbol: str
    name: Optional[str] = None
    quantity: Decimal
    avg_cost: Decimal
    current_price: Decimal
    current_value: Decimal
    profit_loss: Decimal
    profit_loss_percent: Decimal
    category: Optional[str] = None
    currency: Optional[str] = None
    change_percent_24h: Optional[Decimal] = None


class WalletResponse(BaseModel):
    balance: Decimal
    usd_try_rate: Decimal
    total_usd: Decimal
    total_try: Decimal
    cash_try_in_usd: Decimal
    cash_usd: Decimal
    cash_usdt: Decimal
    cash_foreign_usd: Decimal
    investments_value_usd: Decimal
    breakdown: dict[str, Decimal]
    profit_loss: Decimal
    profit_loss_percent: Decimal
    holdings: list[HoldingResponse]


@router.get("/wallet", response_model=WalletResponse)
async def get_wallet(
    user_id: str = Depends(current_user_id),
    store: LedgerStore = Depends(get_store),
    oracle: PriceOracle = Depends(get_oracle),
    settings: Settings = Depends(get_settings),
) -> WalletResponse:
    """Net worth in USD and TRY, unrealized P&L and per-holding rows."""
    user = await store.get_user(user_id)
    if user is None:
        raise UserNotFound(user_id)

    symbols = sorted({h.symbol for h in user.holdings} | {VALUATION_CURRENCY})
    quotes = await oracle.get_quotes(symbols)
    rate = resolve_usd_try_rate(quotes, settings.fallback_usd_try_rate)

    net_worth = compute_net_worth(user.balance, user.holdings, quotes, rate)
    pnl = compute_profit_loss(user.holdings, quotes, rate)
    rows = value_holdings(user.holdings, quotes, include_cash=True)

    return WalletResponse(
        balance=user.balance,
        usd_try_rate=rate,
        total_usd=net_worth.total_usd,
        total_try=net_worth.total_try,
        cash_try_in_usd=net_worth.cash_try_in_usd,
        cash_usd=net_worth.cash_usd,
        cash_usdt=net_worth.cash_usdt,
        cash_foreign_usd=net_worth.cash_foreign_usd,
        investments_value_usd=net_worth.investments_value_usd,
        breakdown=dict(net_worth.breakdown),
        profit_loss=pnl.absolute,
        profit_loss_percent=pnl.percent,
        holdings=[HoldingResponse(**asdict(row)) for row in rows],
    )


@router.post("/wallet/refill", response_model=TransactionResponse)
async def refill_wallet(
    user_id: str = Depends(current_user_id),
    settler: TradeSettler = Depends(get_settler),
) -> TransactionResponse:
    """Demo top-up, only available while the cash balance is below the threshold."""
    tx = await settler.refill_balance(user_id)
    return TransactionResponse.from_transaction(tx)


@router.post("/trades", response_model=TransactionResponse, status_code=201)
async def execute_trade(
    request: TradeRequest,
    user_id: str = Depends(current_user_id),
    settler: TradeSettler = Depends(get_settler),
) -> TransactionResponse:
    """Buy or sell immediately at the current market price."""
    tx = await settler.execute_market_trade(user_id, request.symbol, request.quantity, request.side.upper())
    return TransactionResponse.from_transaction(tx)


@router.get("/transactions", response_model=list[TransactionResponse])
async def list_transactions(
    limit: int = Query(50, ge=1, le=500),
    user_id: str = Depends(current_user_id),
    store: LedgerStore = Depends(get_store),
) -> list[TransactionResponse]:
    rows = await store.list_transactions(user_id=user_id, limit=limit)
    return [TransactionResponse.from_transaction(tx) for tx in rows]


@router.get("/notifications", response_model=list[NotificationResponse])
async def list_notifications(
    unread_only: bool = Query(False),
    limit: int = Query(50, ge=1, le=500),
    user_id: str = Depends(current_user_id),
    store: LedgerStore = Depends(get_store),
) -> list[NotificationResponse]:
    rows = await store.list_notifications(user_id=user_id, unread_only=unread_only, limit=limit)
    return [NotificationResponse.from_notification(item) for item in rows]


@router.post("/notifications/{notification_id}/read")
async def mark_notification_read(
    notification_id: str = Path(...),
    user_id: str = Depends(current_user_id),
    store: LedgerStore = Depends(get_store),
) -> dict[str, bool]:
    if not await store.mark_notification_read(user_id=user_id, notification_id=notification_id):
        raise HTTPException(
            status_code=404,
            detail={"error": "not_found", "message": f"Notification {notification_id} not found"},
        )
    return {"success": True}
