"""SQLAlchemy models for the ledger database."""

from db.models.ledger import (
    Base,
    HoldingRow,
    LimitOrderRow,
    NotificationRow,
    TransactionRow,
    UserRow,
)

__all__ = ["Base", "HoldingRow", "LimitOrderRow", "NotificationRow", "TransactionRow", "UserRow"]
