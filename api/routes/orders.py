"""Limit order endpoints for the signed-in user."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query
from pydantic import BaseModel, Field

from api.deps import current_user_id, get_order_service
from core.orders.service import OrderService, OrderView
from core.types import LimitOrder, OrderStatus

router = APIRouter(prefix="/api/orders", tags=["orders"])


class CreateOrderRequest(BaseModel):
    """Limit order request; give exactly one of quantity or amount."""

    symbol: str = Field(..., min_length=1, description="Asset symbol (e.g. BTC, THYAO)")
    side: str = Field(..., description="BUY or SELL")
    target_price: Decimal
    quantity: Optional[Decimal] = Field(None, description="Units of the asset")
    amount: Optional[Decimal] = Field(None, description="Cash amount in the asset's quote currency")


class OrderResponse(BaseModel):
    id: str
    symbol: str
    side: str
    quantity: Optional[Decimal] = None
    amount: Optional[Decimal] = None
    target_price: Decimal
    status: str
    failure_reason: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    current_price: Optional[Decimal] = None
    currency: Optional[str] = None

    @classmethod
    def from_order(cls, order: LimitOrder, view: Optional[OrderView] = None) -> "OrderResponse":
        return cls(
            id=order.id,
            symbol=order.symbol,
            side=order.side,
            quantity=order.quantity,
            amount=order.amount,
            target_price=order.target_price,
            status=order.status.value,
            failure_reason=order.failure_reason,
            created_at=order.created_at,
            updated_at=order.updated_at,
            current_price=view.current_price if view is not None else None,
            currency=view.currency if view is not None else None,
        )


@router.post("", response_model=OrderResponse, status_code=201)
async def create_order(
    request: CreateOrderRequest,
    user_id: str = Depends(current_user_id),
    service: OrderService = Depends(get_order_service),
) -> OrderResponse:
    """Create a PENDING limit order.

    BUY fills when the price falls to or below target; SELL when it rises to
    or above target.
    """
    order = await service.create_order(
        user_id,
        symbol=request.symbol,
        side=request.side.upper(),
        target_price=request.target_price,
        quantity=request.quantity,
        amount=request.amount,
    )
    return OrderResponse.from_order(order)


@router.get("", response_model=list[OrderResponse])
async def list_orders(
    status: Optional[str] = Query(None, description="Filter by status (PENDING, COMPLETED, CANCELLED, FAILED)"),
    user_id: str = Depends(current_user_id),
    service: OrderService = Depends(get_order_service),
) -> list[OrderResponse]:
    """List the caller's orders, newest first, with live prices."""
    status_filter: Optional[OrderStatus] = None
    if status is not None:
        try:
            status_filter = OrderStatus(status.upper())
        except ValueError as exc:
            raise HTTPException(
                status_code=400,
                detail={"error": "validation_error", "message": f"Invalid status: {status}"},
            ) from exc

    views = await service.list_orders(user_id, status=status_filter)
    return [OrderResponse.from_order(view.order, view) for view in views]


@router.get("/pending/count")
async def pending_count(
    user_id: str = Depends(current_user_id),
    service: OrderService = Depends(get_order_service),
) -> dict[str, int]:
    return {"count": await service.pending_count(user_id)}


@router.delete("/{order_id}", response_model=OrderResponse)
async def cancel_order(
    order_id: str = Path(..., description="Order id"),
    user_id: str = Depends(current_user_id),
    service: OrderService = Depends(get_order_service),
) -> OrderResponse:
    """Cancel a PENDING order (404 unknown, 403 not owner, 409 not pending)."""
    order = await service.cancel_order(user_id, order_id)
    return OrderResponse.from_order(order)
