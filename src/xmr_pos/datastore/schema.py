"""Settlement table management.

Only the tables of the settlement models are touched, so the datastore can
share a database with other applications.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import inspect

from xmr_pos.engine.models import ALL_MODELS, Base

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

_TABLES = [model.__table__ for model in ALL_MODELS]


async def create_tables(engine: AsyncEngine) -> None:
    """Create the settlement tables that do not exist yet."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all, tables=_TABLES)


async def drop_tables(engine: AsyncEngine) -> None:
    """Drop the settlement tables (tests and local resets only)."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all, tables=_TABLES)


async def missing_tables(engine: AsyncEngine) -> list[str]:
    """Names of settlement tables absent from the database."""
    async with engine.connect() as conn:
        existing = await conn.run_sync(lambda sync_conn: set(inspect(sync_conn).get_table_names()))
    return [table.name for table in _TABLES if table.name not in existing]
