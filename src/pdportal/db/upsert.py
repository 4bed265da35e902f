"""Dialect-aware INSERT for ``ON CONFLICT`` statements (PostgreSQL in production, SQLite in tests)."""

from __future__ import annotations

from typing import Any

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession


def dialect_insert(db: AsyncSession, entity: Any) -> Any:  # noqa: ANN401
    """Return an INSERT construct supporting ``on_conflict_do_nothing`` for the session's backend."""
    if db.get_bind().dialect.name == "postgresql":
        return pg_insert(entity)
    return sqlite_insert(entity)
