"""Async SQLAlchemy engine construction for SQLite (aiosqlite) and PostgreSQL (asyncpg)."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from xmr_pos.config.settings import DatabaseEngine

if TYPE_CHECKING:
    from xmr_pos.config.settings import DatabaseConfig


def _sqlite_pragmas(dbapi_connection: Any, _record: Any) -> None:
    # Sub-transactions rely on ON DELETE CASCADE, which SQLite ignores by default.
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_engine(config: DatabaseConfig) -> AsyncEngine:
    """Engine for *config*; PostgreSQL gets a bounded, pre-pinged pool."""
    if config.engine is DatabaseEngine.SQLITE:
        engine = create_async_engine(config.dsn, echo=config.debug_sql)
        event.listen(engine.sync_engine, "connect", _sqlite_pragmas)
        return engine

    return create_async_engine(
        config.dsn,
        echo=config.debug_sql,
        pool_size=config.max_idle_connections,
        max_overflow=max(config.max_open_connections - config.max_idle_connections, 0),
        pool_pre_ping=True,
    )
