"""Storage implementations.

Concrete implementations of the persistence interfaces in `core.persistence`:
an in-memory store for tests and local runs, and PostgreSQL via SQLAlchemy.
"""

from __future__ import annotations

from typing import Optional

from core.persistence.interfaces import LedgerStore

from .memory import InMemoryLedgerStore
from .postgres import PostgresConfig, PostgresLedgerStore


def build_store(database_url: Optional[str]) -> LedgerStore:
    """PostgreSQL when a URL is configured, otherwise an in-memory store."""
    if database_url:
        return PostgresLedgerStore(config=PostgresConfig(database_url=database_url))
    return InMemoryLedgerStore()
