"""Persistence interfaces.

These protocols define the ledger's persistence boundary. Implementations live
in `core.storage` (in-memory for tests and local runs, PostgreSQL for
production).
"""

from .interfaces import (
    LedgerStore,
    LedgerTransaction,
    NotificationStore,
    OrderStore,
    TransactionStore,
    UserStore,
)
