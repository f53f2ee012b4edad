"""Datastore: owns the async engine and hands out sessions.

The settlement tables are created on :meth:`Datastore.open` unless the
caller opts out (for example when the schema is managed externally).
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from xmr_pos.datastore.engines import create_engine
from xmr_pos.datastore.schema import create_tables

if TYPE_CHECKING:
    from xmr_pos.config.settings import DatabaseConfig

logger = logging.getLogger(__name__)

_ERR_NOT_OPEN = "Datastore is not open. Call open() first."


class Datastore:
    """Async SQLAlchemy engine plus a session factory.

    Sessions do not expire attributes on commit, so entities returned by the
    repository stay readable after their session has closed.
    """

    def __init__(self, config: DatabaseConfig) -> None:
        self._config = config
        self._engine: AsyncEngine | None = None
        self._sessions: async_sessionmaker[AsyncSession] | None = None

    async def open(self, *, create_schema: bool = True) -> None:
        """Create the engine and, by default, any missing settlement tables."""
        self._engine = create_engine(self._config)
        self._sessions = async_sessionmaker(self._engine, expire_on_commit=False)
        if create_schema:
            await create_tables(self._engine)
        logger.info("Datastore open (%s)", self._config.engine.value)

    async def close(self) -> None:
        """Dispose the engine. Safe to call when already closed."""
        if self._engine is None:
            return
        await self._engine.dispose()
        self._engine = None
        self._sessions = None

    @property
    def is_open(self) -> bool:
        return self._engine is not None

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            raise RuntimeError(_ERR_NOT_OPEN)
        return self._engine

    def session(self) -> AsyncSession:
        """New session; use it as ``async with datastore.session() as s``."""
        if self._sessions is None:
            raise RuntimeError(_ERR_NOT_OPEN)
        return self._sessions()

    async def ping(self) -> bool:
        """Round-trip a trivial query; False if the database is unreachable."""
        if self._engine is None:
            return False
        try:
            async with self._engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except SQLAlchemyError as exc:
            logger.warning("Datastore ping failed: %s", exc)
            return False
        return True
