from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import urlsplit


def normalize_database_url(database_url: str) -> str:
    """Normalize DATABASE_URL to an async SQLAlchemy URL.

    Supports:
    - Bare: host:port/dbname or user:pass@host:port/dbname
    - postgresql://
    - postgres://
    - postgresql+<driver>:// (e.g. psycopg2)
    - postgresql+asyncpg://
    """
    if "://" not in database_url:
        candidate = f"postgresql+asyncpg://{database_url}"
        parsed = urlsplit(candidate)
        if not parsed.netloc or parsed.path in {"", "/"}:
            raise ValueError("Unsupported DATABASE_URL format. Expected host:port/dbname or user:pass@host:port/dbname")
        database_url = candidate

    if database_url.startswith("postgresql+asyncpg://"):
        return database_url
    if database_url.startswith("postgresql+"):
        return "postgresql+asyncpg://" + database_url.split("://", 1)[1]
    if database_url.startswith("postgresql://"):
        return database_url.replace("postgresql://", "postgresql+asyncpg://", 1)
    if database_url.startswith("postgres://"):
        return database_url.replace("postgres://", "postgresql+asyncpg://", 1)

    return database_url


@dataclass(frozen=True)
class PostgresConfig:
    """Connection configuration.

    `database_url` should come from environment (e.g. DATABASE_URL).
    Do not log it.
    """

    database_url: str
    connect_timeout_seconds: float = 3.0
    pool_size: int = 5

    @property
    def async_url(self) -> str:
        return normalize_database_url(self.database_url)
