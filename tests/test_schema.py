"""Tests for the SQL schema, its loader and the ORM models."""

from __future__ import annotations

from pathlib import Path

import pytest

from core.storage.postgres.config import PostgresConfig, normalize_database_url
from db.init_db import SCHEMA_PATH, iter_sql_statements
from db.models import Base


def test_iter_sql_statements_handles_comments_and_quotes():
    sql = """
    -- leading comment; with a semicolon
    CREATE TABLE a (x TEXT DEFAULT 'semi;colon');
    INSERT INTO a VALUES ('it''s');  -- trailing
    SELECT 1
    """

    statements = list(iter_sql_statements(sql))

    assert statements == [
        "CREATE TABLE a (x TEXT DEFAULT 'semi;colon')",
        "INSERT INTO a VALUES ('it''s')",
        "SELECT 1",
    ]


def test_schema_file_matches_models():
    sql = Path(SCHEMA_PATH).read_text(encoding="utf-8")
    statements = list(iter_sql_statements(sql))

    created = {
        stmt.split("(")[0].split()[-1]
        for stmt in statements
        if stmt.upper().startswith("CREATE TABLE")
    }

    assert created == set(Base.metadata.tables)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("postgresql://u:p@h:5432/db", "postgresql+asyncpg://u:p@h:5432/db"),
        ("postgres://u:p@h/db", "postgresql+asyncpg://u:p@h/db"),
        ("postgresql+psycopg2://u@h/db", "postgresql+asyncpg://u@h/db"),
        ("postgresql+asyncpg://u@h/db", "postgresql+asyncpg://u@h/db"),
        ("localhost:5432/ledger", "postgresql+asyncpg://localhost:5432/ledger"),
    ],
)
def test_normalize_database_url(raw, expected):
    assert normalize_database_url(raw) == expected
    assert PostgresConfig(database_url=raw).async_url == expected


def test_normalize_rejects_bare_host():
    with pytest.raises(ValueError):
        normalize_database_url("localhost")
