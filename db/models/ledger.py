"""SQLAlchemy models for the ledger tables.

These models map to the tables created by db/schema.sql:
- users
- holdings
- limit_orders
- transactions
- notifications
"""

from __future__ import annotations

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Numeric,
    Text,
    func,
)
from sqlalchemy.orm import DeclarativeBase

# Money and quantities: exact decimals, never floats.
Amount = Numeric(36, 18)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class UserRow(Base):
    """Account with home-currency cash balance.

    Table: users
    """

    __tablename__ = "users"

    id = Column(Text, primary_key=True)
    email = Column(Text, nullable=True, unique=True)
    name = Column(Text, nullable=True)
    balance = Column(Amount, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (CheckConstraint("balance >= 0", name="ck_users_balance_non_negative"),)

    def __repr__(self) -> str:
        return f"<UserRow(id={self.id}, balance={self.balance})>"


class HoldingRow(Base):
    """Per-user position in one symbol.

    Table: holdings
    """

    __tablename__ = "holdings"

    user_id = Column(Text, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    symbol = Column(Text, primary_key=True)
    quantity = Column(Amount, nullable=False)
    avg_cost = Column(Amount, nullable=False, default=0)  # in the asset's quote currency

    __table_args__ = (CheckConstraint("quantity >= 0", name="ck_holdings_quantity_non_negative"),)

    def __repr__(self) -> str:
        return f"<HoldingRow(user={self.user_id}, symbol={self.symbol}, qty={self.quantity})>"


class LimitOrderRow(Base):
    """Standing conditional order.

    Table: limit_orders
    """

    __tablename__ = "limit_orders"

    id = Column(Text, primary_key=True)
    user_id = Column(Text, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    symbol = Column(Text, nullable=False)
    side = Column(Text, nullable=False)  # BUY|SELL
    quantity = Column(Amount, nullable=True)
    amount = Column(Amount, nullable=True)
    target_price = Column(Amount, nullable=False)
    status = Column(Text, nullable=False, default="PENDING")  # PENDING|COMPLETED|CANCELLED|FAILED
    failure_reason = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        CheckConstraint("side IN ('BUY', 'SELL')", name="ck_limit_orders_side"),
        CheckConstraint(
            "status IN ('PENDING', 'COMPLETED', 'CANCELLED', 'FAILED')", name="ck_limit_orders_status"
        ),
        CheckConstraint("(quantity IS NULL) <> (amount IS NULL)", name="ck_limit_orders_one_size"),
        Index("idx_limit_orders_status_created", "status", "created_at"),
        Index("idx_limit_orders_user", "user_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<LimitOrderRow(id={self.id}, {self.side} {self.symbol} @ {self.target_price}, {self.status})>"


class TransactionRow(Base):
    """Append-only trade/deposit record.

    Table: transactions
    """

    __tablename__ = "transactions"

    id = Column(Text, primary_key=True)
    user_id = Column(Text, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    type = Column(Text, nullable=False)  # BUY|SELL|DEPOSIT
    symbol = Column(Text, nullable=False)
    quantity = Column(Amount, nullable=False)
    price = Column(Amount, nullable=False)
    total = Column(Amount, nullable=False)
    currency = Column(Text, nullable=False, default="TRY")
    date = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (Index("idx_transactions_user_date", "user_id", "date"),)

    def __repr__(self) -> str:
        return f"<TransactionRow(id={self.id}, {self.type} {self.quantity} {self.symbol})>"


class NotificationRow(Base):
    """User-facing fill/failure notice.

    Table: notifications
    """

    __tablename__ = "notifications"

    id = Column(Text, primary_key=True)
    user_id = Column(Text, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    title = Column(Text, nullable=False)
    message = Column(Text, nullable=False)
    read = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (Index("idx_notifications_user_created", "user_id", "created_at"),)

    def __repr__(self) -> str:
        return f"<NotificationRow(id={self.id}, user={self.user_id}, read={self.read})>"
