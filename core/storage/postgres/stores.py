from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional, Sequence

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from core.errors import UserNotFound
from core.storage.postgres.config import PostgresConfig
from core.types import LimitOrder, Notification, OrderStatus, Transaction, User
from db.crud import ledger as crud

logger = logging.getLogger(__name__)


class _PostgresUnit:
    """One DB transaction scoped to a single user.

    The user row is locked with SELECT ... FOR UPDATE on first read, which
    serializes units for the same user across processes.
    """

    def __init__(self, session: AsyncSession, user_id: str) -> None:
        self._session = session
        self.user_id = user_id
        self._user: Optional[User] = None

    async def get_user(self) -> User:
        if self._user is None:
            user = await crud.get_user(self._session, self.user_id, for_update=True)
            if user is None:
                raise UserNotFound(self.user_id)
            self._user = user
        return self._user

    async def save_user(self, user: User) -> None:
        if user.id != self.user_id:
            raise ValueError("unit of work is scoped to a single user")
        await self.get_user()
        await crud.save_user(self._session, user)
        self._user = user

    async def append_transaction(self, transaction: Transaction) -> Transaction:
        await crud.insert_transaction(self._session, transaction)
        return transaction

    async def add_notification(self, notification: Notification) -> Notification:
        await crud.insert_notification(self._session, notification)
        return notification

    async def transition_order(
        self,
        order_id: str,
        *,
        expected: OrderStatus,
        target: OrderStatus,
        reason: Optional[str] = None,
    ) -> bool:
        # Lock the owner first so lock order is always user row -> order row.
        await self.get_user()
        return await crud.transition_order(
            self._session, order_id, expected=expected, target=target, reason=reason, user_id=self.user_id
        )


class PostgresLedgerStore:
    """PostgreSQL-backed LedgerStore (SQLAlchemy async + asyncpg)."""

    def __init__(self, *, config: PostgresConfig) -> None:
        self._config = config
        self._engine: AsyncEngine | None = None
        self._session_factory: async_sessionmaker[AsyncSession] | None = None

    def _get_session_factory(self) -> async_sessionmaker[AsyncSession]:
        if self._session_factory is None:
            # Do not log the URL (it may contain secrets).
            self._engine = create_async_engine(
                self._config.async_url,
                echo=False,
                pool_pre_ping=True,
                pool_size=self._config.pool_size,
                connect_args={"timeout": self._config.connect_timeout_seconds},
            )
            self._session_factory = async_sessionmaker(self._engine, class_=AsyncSession, expire_on_commit=False)
        return self._session_factory

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        factory = self._get_session_factory()
        async with factory() as session:
            async with session.begin():
                yield session

    @asynccontextmanager
    async def transaction(self, user_id: str) -> AsyncIterator[_PostgresUnit]:
        async with self._session() as session:
            yield _PostgresUnit(session, user_id)

    async def ping(self) -> bool:
        try:
            async with self._session() as session:
                await session.execute(text("SELECT 1"))
            return True
        except Exception as exc:
            logger.warning(f"Database ping failed: {exc}")
            return False

    async def close(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            self._session_factory = None

    # Users

    async def get_user(self, user_id: str) -> Optional[User]:
        async with self._session() as session:
            return await crud.get_user(session, user_id)

    async def create_user(self, user: User) -> User:
        async with self._session() as session:
            await crud.insert_user(session, user)
        return await self.get_user(user.id) or user

    # Orders

    async def create_order(self, order: LimitOrder) -> LimitOrder:
        async with self._session() as session:
            await crud.insert_order(session, order)
        return order

    async def get_order(self, order_id: str) -> Optional[LimitOrder]:
        async with self._session() as session:
            return await crud.get_order(session, order_id)

    async def list_orders(
        self,
        *,
        user_id: str | None = None,
        status: OrderStatus | None = None,
        oldest_first: bool = False,
        limit: int | None = None,
    ) -> Sequence[LimitOrder]:
        async with self._session() as session:
            return await crud.list_orders(
                session, user_id=user_id, status=status, oldest_first=oldest_first, limit=limit
            )

    async def count_orders(self, *, user_id: str, status: OrderStatus | None = None) -> int:
        async with self._session() as session:
            return await crud.count_orders(session, user_id=user_id, status=status)

    async def transition_order(
        self,
        order_id: str,
        *,
        expected: OrderStatus,
        target: OrderStatus,
        reason: Optional[str] = None,
    ) -> bool:
        order = await self.get_order(order_id)
        if order is None:
            return False
        async with self.transaction(order.user_id) as unit:
            return await unit.transition_order(order_id, expected=expected, target=target, reason=reason)

    # Transactions

    async def list_transactions(self, *, user_id: str, limit: int = 50) -> Sequence[Transaction]:
        async with self._session() as session:
            return await crud.list_transactions(session, user_id=user_id, limit=limit)

    # Notifications

    async def add_notification(self, notification: Notification) -> Notification:
        async with self._session() as session:
            await crud.insert_notification(session, notification)
        return notification

    async def list_notifications(
        self, *, user_id: str, unread_only: bool = False, limit: int = 50
    ) -> Sequence[Notification]:
        async with self._session() as session:
            return await crud.list_notifications(session, user_id=user_id, unread_only=unread_only, limit=limit)

    async def mark_notification_read(self, *, user_id: str, notification_id: str) -> bool:
        async with self._session() as session:
            return await crud.mark_notification_read(session, user_id=user_id, notification_id=notification_id)
