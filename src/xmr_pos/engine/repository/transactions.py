"""Transaction store used by reconciliation, the sweep and the live feed."""

from __future__ import annotations

import contextlib
from typing import TYPE_CHECKING, Any

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import selectinload

from xmr_pos.engine.models.transaction import SubTransaction, Transaction
from xmr_pos.errors.service_errors import StoreError

if TYPE_CHECKING:
    from collections.abc import AsyncIterator
    from datetime import datetime

    from sqlalchemy.ext.asyncio import AsyncSession

    from xmr_pos.datastore.client import Datastore


class TransactionRepository:
    """Data access layer for transactions and their sub-transactions.

    Every method opens its own session; SQLAlchemy failures surface as
    :class:`StoreError`. Returned entities are detached with their loaded
    attributes intact.
    """

    def __init__(self, datastore: Datastore) -> None:
        self._ds = datastore

    @contextlib.asynccontextmanager
    async def _session(self, operation: str) -> AsyncIterator[AsyncSession]:
        try:
            async with self._ds.session() as session:
                yield session
        except SQLAlchemyError as exc:
            raise StoreError(f"{operation} failed: {exc}") from exc

    # ------------------------------------------------------------------
    # Transaction
    # ------------------------------------------------------------------

    async def create_transaction(self, tx: Transaction) -> Transaction:
        """Persist a new transaction and return it with sub-transactions loaded."""
        async with self._session("create_transaction") as session:
            session.add(tx)
            await session.commit()
            tx_id = tx.id
        created = await self.find_by_id(tx_id)
        if created is None:
            raise StoreError(f"transaction {tx_id} vanished after create")
        return created

    async def find_by_id(self, tx_id: int) -> Transaction | None:
        """Find a transaction by id, with its sub-transactions."""
        async with self._session("find_by_id") as session:
            stmt = (
                select(Transaction)
                .where(Transaction.id == tx_id)
                .options(selectinload(Transaction.sub_transactions))
            )
            result = await session.execute(stmt)
            return result.scalar_one_or_none()

    async def find_unconfirmed(self) -> list[Transaction]:
        """List all transactions not yet confirmed, oldest first."""
        async with self._session("find_unconfirmed") as session:
            stmt = (
                select(Transaction)
                .where(Transaction.confirmed.is_(False))
                .order_by(Transaction.created_at.asc(), Transaction.id.asc())
            )
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def count_unconfirmed(self) -> int:
        """Count transactions not yet confirmed."""
        async with self._session("count_unconfirmed") as session:
            stmt = select(func.count(Transaction.id)).where(Transaction.confirmed.is_(False))
            return int((await session.execute(stmt)).scalar_one())

    async def find_recent_pending_by_amount(
        self, amount: int, since: datetime
    ) -> list[Transaction]:
        """Find unconfirmed transactions of exactly *amount* created at or after *since*."""
        async with self._session("find_recent_pending_by_amount") as session:
            stmt = select(Transaction).where(
                Transaction.amount == amount,
                Transaction.confirmed.is_(False),
                Transaction.created_at >= since,
            )
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def update_transaction(self, tx_id: int, **values: Any) -> bool:
        """Update fields on a transaction in a single statement."""
        async with self._session("update_transaction") as session:
            stmt = update(Transaction).where(Transaction.id == tx_id).values(**values)
            result = await session.execute(stmt)
            await session.commit()
            return result.rowcount > 0  # type: ignore[union-attr]

    async def delete_pending_before(self, cutoff: datetime) -> int:
        """Delete unconfirmed transactions created before *cutoff*.

        Sub-transactions are removed in the same database transaction.
        Returns the number of transactions deleted.
        """
        async with self._session("delete_pending_before") as session:
            id_stmt = select(Transaction.id).where(
                Transaction.confirmed.is_(False),
                Transaction.created_at < cutoff,
            )
            ids = list((await session.execute(id_stmt)).scalars().all())
            if not ids:
                return 0
            await session.execute(
                delete(SubTransaction).where(SubTransaction.transaction_id.in_(ids))
            )
            result = await session.execute(delete(Transaction).where(Transaction.id.in_(ids)))
            await session.commit()
            return result.rowcount  # type: ignore[union-attr]

    # ------------------------------------------------------------------
    # SubTransaction
    # ------------------------------------------------------------------

    async def create_sub_transaction(self, sub: SubTransaction) -> SubTransaction:
        """Persist a new sub-transaction."""
        async with self._session("create_sub_transaction") as session:
            session.add(sub)
            await session.commit()
        return sub

    async def update_sub_transaction(self, sub_id: int, **values: Any) -> bool:
        """Overwrite fields on an existing sub-transaction."""
        async with self._session("update_sub_transaction") as session:
            stmt = update(SubTransaction).where(SubTransaction.id == sub_id).values(**values)
            result = await session.execute(stmt)
            await session.commit()
            return result.rowcount > 0  # type: ignore[union-attr]
