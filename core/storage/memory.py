"""In-memory ledger store.

Used by the test-suite and by local runs without DATABASE_URL. Each user has
one `asyncio.Lock`; a unit of work stages its writes and applies them on a
clean exit only, so an exception anywhere inside the unit leaves the store
untouched.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from dataclasses import replace
from typing import AsyncIterator, Optional, Sequence

from core.errors import UserNotFound
from core.orders.state_machine import ensure_transition
from core.types import LimitOrder, Notification, OrderStatus, Transaction, User, utcnow


class _MemoryUnit:
    """Staged writes for one user, applied by the store on commit."""

    def __init__(self, store: "InMemoryLedgerStore", user_id: str) -> None:
        self._store = store
        self.user_id = user_id
        self._user: Optional[User] = None
        self._transactions: list[Transaction] = []
        self._notifications: list[Notification] = []
        self._transitions: dict[str, LimitOrder] = {}

    async def get_user(self) -> User:
        if self._user is None:
            user = self._store._users.get(self.user_id)
            if user is None:
                raise UserNotFound(self.user_id)
            self._user = user
        return self._user

    async def save_user(self, user: User) -> None:
        if user.id != self.user_id:
            raise ValueError("unit of work is scoped to a single user")
        self._user = user

    async def append_transaction(self, transaction: Transaction) -> Transaction:
        self._transactions.append(transaction)
        return transaction

    async def add_notification(self, notification: Notification) -> Notification:
        self._notifications.append(notification)
        return notification

    async def transition_order(
        self,
        order_id: str,
        *,
        expected: OrderStatus,
        target: OrderStatus,
        reason: Optional[str] = None,
    ) -> bool:
        order = self._transitions.get(order_id) or self._store._orders.get(order_id)
        if order is None or order.user_id != self.user_id or order.status is not expected:
            return False
        ensure_transition(order.status, target)
        self._transitions[order_id] = replace(
            order, status=target, updated_at=utcnow(), failure_reason=reason
        )
        return True

    def _commit(self) -> None:
        store = self._store
        if self._user is not None:
            store._users[self.user_id] = self._user
        store._transactions.extend(self._transactions)
        store._notifications.extend(self._notifications)
        store._orders.update(self._transitions)


class InMemoryLedgerStore:
    """Dict-backed LedgerStore with per-user locking."""

    def __init__(self) -> None:
        self._users: dict[str, User] = {}
        self._orders: dict[str, LimitOrder] = {}
        self._transactions: list[Transaction] = []
        self._notifications: list[Notification] = []
        self._locks: dict[str, asyncio.Lock] = {}

    def _lock_for(self, user_id: str) -> asyncio.Lock:
        lock = self._locks.get(user_id)
        if lock is None:
            lock = self._locks[user_id] = asyncio.Lock()
        return lock

    @asynccontextmanager
    async def transaction(self, user_id: str) -> AsyncIterator[_MemoryUnit]:
        async with self._lock_for(user_id):
            unit = _MemoryUnit(self, user_id)
            yield unit
            # Reached only when the body did not raise.
            unit._commit()

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        return None

    # Users

    async def get_user(self, user_id: str) -> Optional[User]:
        return self._users.get(user_id)

    async def create_user(self, user: User) -> User:
        if user.id in self._users:
            raise ValueError(f"User {user.id} already exists")
        if user.created_at is None:
            user = replace(user, created_at=utcnow())
        self._users[user.id] = user
        return user

    # Orders

    async def create_order(self, order: LimitOrder) -> LimitOrder:
        if order.id in self._orders:
            raise ValueError(f"Order {order.id} already exists")
        self._orders[order.id] = order
        return order

    async def get_order(self, order_id: str) -> Optional[LimitOrder]:
        return self._orders.get(order_id)

    async def list_orders(
        self,
        *,
        user_id: str | None = None,
        status: OrderStatus | None = None,
        oldest_first: bool = False,
        limit: int | None = None,
    ) -> Sequence[LimitOrder]:
        matched = [
            (o.created_at, seq, o)
            for seq, o in enumerate(self._orders.values())
            if (user_id is None or o.user_id == user_id) and (status is None or o.status is status)
        ]
        # Insertion order breaks timestamp ties.
        matched.sort(key=lambda row: row[:2], reverse=not oldest_first)
        rows = [o for _, _, o in matched]
        return rows[:limit] if limit is not None else rows

    async def count_orders(self, *, user_id: str, status: OrderStatus | None = None) -> int:
        return len(await self.list_orders(user_id=user_id, status=status))

    async def transition_order(
        self,
        order_id: str,
        *,
        expected: OrderStatus,
        target: OrderStatus,
        reason: Optional[str] = None,
    ) -> bool:
        order = self._orders.get(order_id)
        if order is None:
            return False
        async with self.transaction(order.user_id) as unit:
            return await unit.transition_order(
                order_id, expected=expected, target=target, reason=reason
            )

    # Transactions

    async def list_transactions(self, *, user_id: str, limit: int = 50) -> Sequence[Transaction]:
        matched = [(t.date, seq, t) for seq, t in enumerate(self._transactions) if t.user_id == user_id]
        matched.sort(key=lambda row: row[:2], reverse=True)
        return [t for _, _, t in matched][:limit]

    # Notifications

    async def add_notification(self, notification: Notification) -> Notification:
        self._notifications.append(notification)
        return notification

    async def list_notifications(
        self, *, user_id: str, unread_only: bool = False, limit: int = 50
    ) -> Sequence[Notification]:
        matched = [
            (n.created_at, seq, n)
            for seq, n in enumerate(self._notifications)
            if n.user_id == user_id and not (unread_only and n.read)
        ]
        matched.sort(key=lambda row: row[:2], reverse=True)
        return [n for _, _, n in matched][:limit]

    async def mark_notification_read(self, *, user_id: str, notification_id: str) -> bool:
        for index, item in enumerate(self._notifications):
            if item.id == notification_id and item.user_id == user_id:
                if not item.read:
                    self._notifications[index] = replace(item, read=True)
                return True
        return False
