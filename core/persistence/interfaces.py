from __future__ import annotations

from typing import AsyncContextManager, Optional, Protocol, Sequence

from core.types import LimitOrder, Notification, OrderStatus, Transaction, User


class LedgerTransaction(Protocol):
    """An open per-user atomic unit.

    Writes become visible together on commit, or not at all. While the unit
    is open no other unit for the same user can run.
    """

    user_id: str

    async def get_user(self) -> User:
        """Return the locked user (raises UserNotFound if absent)."""

    async def save_user(self, user: User) -> None:
        """Stage the user's new balance and holdings."""

    async def append_transaction(self, transaction: Transaction) -> Transaction:
        """Stage an immutable transaction record."""

    async def add_notification(self, notification: Notification) -> Notification:
        """Stage a notification for the locked user."""

    async def transition_order(
        self,
        order_id: str,
        *,
        expected: OrderStatus,
        target: OrderStatus,
        reason: Optional[str] = None,
    ) -> bool:
        """Conditionally move an order's status; False if it was not `expected`."""


class UserStore(Protocol):
    async def get_user(self, user_id: str) -> Optional[User]:
        """Fetch a user with holdings."""

    async def create_user(self, user: User) -> User:
        """Persist a new user."""


class OrderStore(Protocol):
    async def create_order(self, order: LimitOrder) -> LimitOrder:
        """Persist a new limit order."""

    async def get_order(self, order_id: str) -> Optional[LimitOrder]:
        """Fetch a single order by id."""

    async def list_orders(
        self,
        *,
        user_id: str | None = None,
        status: OrderStatus | None = None,
        oldest_first: bool = False,
        limit: int | None = None,
    ) -> Sequence[LimitOrder]:
        """List orders with optional filters (newest first by default)."""

    async def count_orders(self, *, user_id: str, status: OrderStatus | None = None) -> int:
        """Count a user's orders."""

    async def transition_order(
        self,
        order_id: str,
        *,
        expected: OrderStatus,
        target: OrderStatus,
        reason: Optional[str] = None,
    ) -> bool:
        """Compare-and-swap an order status outside any user unit."""


class TransactionStore(Protocol):
    async def list_transactions(self, *, user_id: str, limit: int = 50) -> Sequence[Transaction]:
        """List a user's transactions, newest first."""


class NotificationStore(Protocol):
    async def add_notification(self, notification: Notification) -> Notification:
        """Append a notification."""

    async def list_notifications(
        self, *, user_id: str, unread_only: bool = False, limit: int = 50
    ) -> Sequence[Notification]:
        """List a user's notifications, newest first."""

    async def mark_notification_read(self, *, user_id: str, notification_id: str) -> bool:
        """Mark one of the user's notifications read; False if not found."""


class LedgerStore(UserStore, OrderStore, TransactionStore, NotificationStore, Protocol):
    """Single persistence boundary for users, orders, transactions and notifications."""

    def transaction(self, user_id: str) -> AsyncContextManager[LedgerTransaction]:
        """Open a per-user atomic unit."""

    async def ping(self) -> bool:
        """Return True if the store is reachable."""

    async def close(self) -> None:
        """Release connections held by the store."""
