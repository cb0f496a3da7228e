"""Async CRUD operations for the ledger tables.

Uses asyncpg/SQLAlchemy async sessions. Functions never commit; the caller
owns the transaction (`async with session.begin(): ...`). Rows are mapped to
the frozen domain records in `core.types` on the way out.
"""

from __future__ import annotations

from typing import Optional, Sequence

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from core.types import (
    ByNotional,
    ByQuantity,
    Holding,
    LimitOrder,
    Notification,
    OrderStatus,
    Transaction,
    User,
)
from db.models.ledger import HoldingRow, LimitOrderRow, NotificationRow, TransactionRow, UserRow

# ---------------------------------------------------------------------------
# Row mapping
# ---------------------------------------------------------------------------


def to_user(row: UserRow, holdings: Sequence[HoldingRow]) -> User:
    return User(
        id=row.id,
        balance=row.balance,
        holdings=tuple(Holding(h.symbol, h.quantity, h.avg_cost) for h in holdings),
        email=row.email,
        name=row.name,
        created_at=row.created_at,
    )


def to_order(row: LimitOrderRow) -> LimitOrder:
    size = ByQuantity(row.quantity) if row.quantity is not None else ByNotional(row.amount)
    return LimitOrder(
        id=row.id,
        user_id=row.user_id,
        symbol=row.symbol,
        side=row.side,
        size=size,
        target_price=row.target_price,
        status=OrderStatus(row.status),
        created_at=row.created_at,
        updated_at=row.updated_at,
        failure_reason=row.failure_reason,
    )


def to_transaction(row: TransactionRow) -> Transaction:
    return Transaction(
        id=row.id,
        user_id=row.user_id,
        type=row.type,
        symbol=row.symbol,
        quantity=row.quantity,
        price=row.price,
        total=row.total,
        currency=row.currency,
        date=row.date,
    )


def to_notification(row: NotificationRow) -> Notification:
    return Notification(
        id=row.id,
        user_id=row.user_id,
        title=row.title,
        message=row.message,
        read=row.read,
        created_at=row.created_at,
    )


# ---------------------------------------------------------------------------
# Users and holdings
# ---------------------------------------------------------------------------


async def get_user(db: AsyncSession, user_id: str, *, for_update: bool = False) -> Optional[User]:
    """Fetch a user with holdings; `for_update` locks the user row until commit."""
    stmt = select(UserRow).where(UserRow.id == user_id)
    if for_update:
        stmt = stmt.with_for_update()
    row = (await db.execute(stmt)).scalars().first()
    if row is None:
        return None

    holdings = (
        (await db.execute(select(HoldingRow).where(HoldingRow.user_id == user_id).order_by(HoldingRow.symbol)))
        .scalars()
        .all()
    )
    return to_user(row, holdings)


async def insert_user(db: AsyncSession, user: User) -> None:
    db.add(
        UserRow(
            id=user.id,
            email=user.email,
            name=user.name,
            balance=user.balance,
            **({"created_at": user.created_at} if user.created_at is not None else {}),
        )
    )
    for item in user.holdings:
        db.add(HoldingRow(user_id=user.id, symbol=item.symbol, quantity=item.quantity, avg_cost=item.avg_cost))
    await db.flush()


async def save_user(db: AsyncSession, user: User) -> None:
    """Write the balance and reconcile holdings (update, insert, delete by symbol)."""
    row = await db.get(UserRow, user.id)
    if row is None:
        raise LookupError(f"User {user.id} not found")
    row.balance = user.balance

    existing = {
        h.symbol: h
        for h in (await db.execute(select(HoldingRow).where(HoldingRow.user_id == user.id))).scalars().all()
    }
    wanted = {h.symbol: h for h in user.holdings}

    for symbol, holding_row in existing.items():
        if symbol not in wanted:
            await db.delete(holding_row)
    for symbol, item in wanted.items():
        holding_row = existing.get(symbol)
        if holding_row is None:
            db.add(HoldingRow(user_id=user.id, symbol=symbol, quantity=item.quantity, avg_cost=item.avg_cost))
        else:
            holding_row.quantity = item.quantity
            holding_row.avg_cost = item.avg_cost
    await db.flush()


# ---------------------------------------------------------------------------
# Limit orders
# ---------------------------------------------------------------------------


async def insert_order(db: AsyncSession, order: LimitOrder) -> None:
    db.add(
        LimitOrderRow(
            id=order.id,
            user_id=order.user_id,
            symbol=order.symbol,
            side=order.side,
            quantity=order.quantity,
            amount=order.amount,
            target_price=order.target_price,
            status=order.status.value,
            failure_reason=order.failure_reason,
            created_at=order.created_at,
            updated_at=order.updated_at,
        )
    )
    await db.flush()


async def get_order(db: AsyncSession, order_id: str) -> Optional[LimitOrder]:
    row = (await db.execute(select(LimitOrderRow).where(LimitOrderRow.id == order_id))).scalars().first()
    return to_order(row) if row is not None else None


async def list_orders(
    db: AsyncSession,
    *,
    user_id: str | None = None,
    status: OrderStatus | None = None,
    oldest_first: bool = False,
    limit: int | None = None,
) -> list[LimitOrder]:
    stmt = select(LimitOrderRow)
    if user_id is not None:
        stmt = stmt.where(LimitOrderRow.user_id == user_id)
    if status is not None:
        stmt = stmt.where(LimitOrderRow.status == status.value)
    ordering = LimitOrderRow.created_at.asc() if oldest_first else LimitOrderRow.created_at.desc()
    stmt = stmt.order_by(ordering, LimitOrderRow.id)
    if limit is not None:
        stmt = stmt.limit(limit)
    rows = (await db.execute(stmt)).scalars().all()
    return [to_order(row) for row in rows]


async def count_orders(db: AsyncSession, *, user_id: str, status: OrderStatus | None = None) -> int:
    stmt = select(func.count()).select_from(LimitOrderRow).where(LimitOrderRow.user_id == user_id)
    if status is not None:
        stmt = stmt.where(LimitOrderRow.status == status.value)
    return int((await db.execute(stmt)).scalar_one())


async def transition_order(
    db: AsyncSession,
    order_id: str,
    *,
    expected: OrderStatus,
    target: OrderStatus,
    reason: Optional[str] = None,
    user_id: Optional[str] = None,
) -> bool:
    """Conditional status update (`... WHERE status = :expected`).

    Returns True only if this call moved the order.
    """
    stmt = (
        update(LimitOrderRow)
        .where(LimitOrderRow.id == order_id, LimitOrderRow.status == expected.value)
        .values(status=target.value, failure_reason=reason, updated_at=func.now())
        .execution_options(synchronize_session=False)
    )
    if user_id is not None:
        stmt = stmt.where(LimitOrderRow.user_id == user_id)
    result = await db.execute(stmt)
    return result.rowcount == 1


# ---------------------------------------------------------------------------
# Transactions and notifications
# ---------------------------------------------------------------------------


async def insert_transaction(db: AsyncSession, transaction: Transaction) -> None:
    db.add(
        TransactionRow(
            id=transaction.id,
            user_id=transaction.user_id,
            type=transaction.type,
            symbol=transaction.symbol,
            quantity=transaction.quantity,
            price=transaction.price,
            total=transaction.total,
            currency=transaction.currency,
            date=transaction.date,
        )
    )
    await db.flush()


async def list_transactions(db: AsyncSession, *, user_id: str, limit: int = 50) -> list[Transaction]:
    rows = (
        (
            await db.execute(
                select(TransactionRow)
                .where(TransactionRow.user_id == user_id)
                .order_by(TransactionRow.date.desc())
                .limit(limit)
            )
        )
        .scalars()
        .all()
    )
    return [to_transaction(row) for row in rows]


async def insert_notification(db: AsyncSession, notification: Notification) -> None:
    db.add(
        NotificationRow(
            id=notification.id,
            user_id=notification.user_id,
            title=notification.title,
            message=notification.message,
            read=notification.read,
            created_at=notification.created_at,
        )
    )
    await db.flush()


async def list_notifications(
    db: AsyncSession, *, user_id: str, unread_only: bool = False, limit: int = 50
) -> list[Notification]:
    stmt = select(NotificationRow).where(NotificationRow.user_id == user_id)
    if unread_only:
        stmt = stmt.where(NotificationRow.read.is_(False))
    stmt = stmt.order_by(NotificationRow.created_at.desc()).limit(limit)
    rows = (await db.execute(stmt)).scalars().all()
    return [to_notification(row) for row in rows]


async def mark_notification_read(db: AsyncSession, *, user_id: str, notification_id: str) -> bool:
    result = await db.execute(
        update(NotificationRow)
        .where(NotificationRow.id == notification_id, NotificationRow.user_id == user_id)
        .values(read=True)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1
