"""Reconciliation merger: the single point of mutation for settlement state.

Given a transaction id and a ``ReceiveStatus`` observation, upserts the
observed transfers into the transaction's sub-transactions (keyed by
``tx_hash``, last write wins), recomputes ``accepted`` and ``confirmed``
from scratch, persists them, and publishes the updated transaction.

Flags are not sticky: an observation reporting less coverage than a
previous one clears them again. Sub-transaction upserts commit one by one,
so a failure part way leaves the earlier upserts applied; the next
delivery of the same observation converges.
"""

from __future__ import annotations

import contextlib
import logging
from typing import TYPE_CHECKING

from xmr_pos.engine.models.transaction import (
    FINALITY_CONFIRMATIONS,
    SubTransaction,
    Transaction,
)
from xmr_pos.errors.definitions import ErrInternal, ErrTransactionNotFound
from xmr_pos.errors.pos_errors import POSError
from xmr_pos.errors.service_errors import StoreError
from xmr_pos.notifications.events import TransactionEvent

if TYPE_CHECKING:
    from xmr_pos.chain.moneropay.models import ReceiveStatus
    from xmr_pos.engine.reconcile.guard import ReconcileGuard
    from xmr_pos.engine.repository.transactions import TransactionRepository
    from xmr_pos.metrics.collector import EngineMetrics
    from xmr_pos.notifications.service import NotificationService

logger = logging.getLogger(__name__)


def is_accepted(tx: Transaction, status: ReceiveStatus) -> bool:
    """Every sub-transaction meets the required confirmations and the total is covered."""
    if any(st.confirmations < tx.required_confirmations for st in tx.sub_transactions):
        return False
    return status.covered_total >= tx.amount


def is_confirmed(tx: Transaction, status: ReceiveStatus) -> bool:
    """Every sub-transaction is final and the unlocked amount covers the charge."""
    if any(st.confirmations < FINALITY_CONFIRMATIONS for st in tx.sub_transactions):
        return False
    return status.covered_unlocked >= tx.amount


class ReconciliationService:
    """Merge external status observations into transactions."""

    def __init__(
        self,
        repository: TransactionRepository,
        guard: ReconcileGuard,
        *,
        notifier: NotificationService | None = None,
        metrics: EngineMetrics | None = None,
    ) -> None:
        self._repo = repository
        self._guard = guard
        self._notifier = notifier
        self._metrics = metrics

    @property
    def guard(self) -> ReconcileGuard:
        """The critical section merges run under."""
        return self._guard

    async def process_transaction(self, transaction_id: int, status: ReceiveStatus) -> Transaction:
        """Merge *status* into the transaction and return its updated state.

        Raises:
            POSError: ``ErrTransactionNotFound`` if the transaction does not
                exist, ``ErrInternal`` if the store fails at any step.
        """
        tracker = self._metrics.track_merge() if self._metrics else contextlib.nullcontext()
        try:
            async with self._guard.hold(transaction_id):
                with tracker:
                    tx = await self._merge(transaction_id, status)
        except POSError as exc:
            self._record(exc.code)
            raise
        self._record("ok")
        self._publish(tx)
        return tx

    async def _merge(self, transaction_id: int, status: ReceiveStatus) -> Transaction:
        tx = await self._load(transaction_id)

        existing = {st.tx_hash: st for st in tx.sub_transactions}
        for transfer in status.transfers:
            values = transfer.as_values()
            current = existing.get(transfer.tx_hash)
            try:
                if current is None:
                    existing[transfer.tx_hash] = await self._repo.create_sub_transaction(
                        SubTransaction(transaction_id=tx.id, **values)
                    )
                else:
                    await self._repo.update_sub_transaction(current.id, **values)
            except StoreError as exc:
                logger.error(
                    "Failed to upsert sub-transaction %s for transaction %d: %s",
                    transfer.tx_hash,
                    transaction_id,
                    exc,
                )
                raise ErrInternal from exc

        # Re-read so the flags are derived from what was actually written.
        tx = await self._load(transaction_id)
        accepted = is_accepted(tx, status)
        confirmed = is_confirmed(tx, status)

        try:
            await self._repo.update_transaction(tx.id, accepted=accepted, confirmed=confirmed)
        except StoreError as exc:
            logger.error("Failed to update transaction %d: %s", transaction_id, exc)
            raise ErrInternal from exc

        tx.accepted = accepted
        tx.confirmed = confirmed
        logger.debug(
            "Merged %d transfer(s) into transaction %d: accepted=%s confirmed=%s",
            len(status.transfers),
            transaction_id,
            accepted,
            confirmed,
        )
        return tx

    async def _load(self, transaction_id: int) -> Transaction:
        try:
            tx = await self._repo.find_by_id(transaction_id)
        except StoreError as exc:
            logger.error("Failed to load transaction %d: %s", transaction_id, exc)
            raise ErrInternal from exc
        if tx is None:
            raise ErrTransactionNotFound
        return tx

    def _record(self, outcome: str) -> None:
        if self._metrics:
            self._metrics.record_merge(outcome)

    def _publish(self, tx: Transaction) -> None:
        """Hand the updated transaction to the live feed without waiting on it."""
        if self._notifier is None:
            return
        try:
            self._notifier.publish(TransactionEvent.from_transaction(tx))
        except Exception:
            logger.exception("Failed to publish update for transaction %d", tx.id)
