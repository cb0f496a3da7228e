#!/usr/bin/env python3
"""Create the ledger tables.

Applies db/schema.sql statement by statement (asyncpg rejects multi-statement
scripts). The schema is idempotent, so re-running is safe.

Usage:
  python -m db.init_db [--database-url URL]
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import re
from pathlib import Path
from typing import Iterator

from sqlalchemy.ext.asyncio import create_async_engine

from core.storage.postgres.config import normalize_database_url

logger = logging.getLogger(__name__)

SCHEMA_PATH = Path(__file__).resolve().parent / "schema.sql"

# Quoted literal ('' escapes, possibly unterminated), line comment, separator, other text.
_SQL_TOKEN = re.compile(r"'(?:[^']|'')*'?|--[^\n]*|;|[^';-]+|-")


def iter_sql_statements(sql: str) -> Iterator[str]:
    """Yield the statements of a SQL script without comments or separators."""
    parts: list[str] = []
    for match in _SQL_TOKEN.finditer(sql):
        token = match.group(0)
        if token.startswith("--"):
            continue
        if token == ";":
            statement = "".join(parts).strip()
            parts = []
            if statement:
                yield statement
            continue
        parts.append(token)

    statement = "".join(parts).strip()
    if statement:
        yield statement


async def apply_schema(database_url: str, schema_path: Path = SCHEMA_PATH) -> int:
    """Run the schema in one transaction and return how many statements ran."""
    statements = list(iter_sql_statements(schema_path.read_text(encoding="utf-8")))

    engine = create_async_engine(normalize_database_url(database_url), echo=False)
    try:
        async with engine.begin() as conn:
            for statement in statements:
                await conn.exec_driver_sql(statement)
    finally:
        await engine.dispose()
    return len(statements)


def main() -> int:
    parser = argparse.ArgumentParser(description="Create the ledger tables")
    parser.add_argument(
        "--database-url",
        default=os.getenv("DATABASE_URL"),
        help="PostgreSQL connection string (default: $DATABASE_URL)",
    )
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    if not args.database_url:
        logger.error("No database configured: pass --database-url or set DATABASE_URL")
        return 1

    count = asyncio.run(apply_schema(args.database_url))
    logger.info(f"Ledger schema applied ({count} statements)")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
