"""PostgreSQL ledger storage.

Notes
- We avoid logging connection URLs to prevent accidental secret leakage.
- Every per-user unit of work is one DB transaction holding the user row lock.
"""

from .config import PostgresConfig, normalize_database_url
from .stores import PostgresLedgerStore
