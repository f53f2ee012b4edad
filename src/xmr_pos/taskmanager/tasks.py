"""Background task definitions: cron job handlers.

- ``sweep_unconfirmed``: re-query MoneroPay for every unconfirmed
  transaction with a receive address and merge the result
- ``cleanup_expired_transactions``: delete transactions left unconfirmed
  past the retention period
- ``calculate_metrics``: refresh the unconfirmed-transactions gauge

Every handler absorbs its own errors; the next tick retries.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

from xmr_pos.errors.pos_errors import POSError
from xmr_pos.errors.service_errors import MoneroPayError, StoreError

if TYPE_CHECKING:
    from xmr_pos.engine.client import POSEngine
    from xmr_pos.metrics.collector import EngineMetrics

logger = logging.getLogger(__name__)


async def task_sweep_unconfirmed(engine: POSEngine) -> int:
    """Run one reconciliation pass over unconfirmed transactions.

    The pass is bounded by ``task.sweep_timeout`` and each MoneroPay query
    by ``task.query_timeout``. A failing query or merge skips that
    transaction only; running out of time ends the pass early.

    Returns:
        The number of transactions merged.
    """
    config = engine.config.task
    merged = 0
    try:
        async with asyncio.timeout(config.sweep_timeout), engine.guard.hold_all():
            try:
                unconfirmed = await engine.repository.find_unconfirmed()
            except StoreError as exc:
                logger.warning("sweep: failed to list unconfirmed transactions: %s", exc)
                return 0

            for tx in unconfirmed:
                if not tx.sub_address:
                    _skip(engine, "no_address")
                    continue
                if await _sweep_one(engine, tx.id, tx.sub_address):
                    merged += 1
    except TimeoutError:
        logger.warning(
            "sweep: pass exceeded %.1fs, stopping early after %d merge(s)",
            config.sweep_timeout,
            merged,
        )
    return merged


async def _sweep_one(engine: POSEngine, transaction_id: int, address: str) -> bool:
    async with engine.guard.hold(transaction_id):
        try:
            async with asyncio.timeout(engine.config.task.query_timeout):
                status = await engine.moneropay.query_address(address)
        except (MoneroPayError, TimeoutError) as exc:
            logger.debug("sweep: query for transaction %d failed: %s", transaction_id, exc)
            _skip(engine, "query_error")
            return False

        try:
            await engine.reconciler.process_transaction(transaction_id, status)
        except POSError as exc:
            logger.warning("sweep: merge for transaction %d failed: %s", transaction_id, exc)
            _skip(engine, "merge_error")
            return False
    return True


def _skip(engine: POSEngine, reason: str) -> None:
    if engine.metrics:
        engine.metrics.record_sweep_skip(reason)


async def task_cleanup_expired_transactions(engine: POSEngine) -> int:
    """Delete unconfirmed transactions older than ``task.retention_period``."""
    cutoff = datetime.now(tz=UTC) - timedelta(seconds=engine.config.task.retention_period)
    try:
        count = await engine.repository.delete_pending_before(cutoff)
    except StoreError as exc:
        logger.warning("cleanup: failed to delete expired transactions: %s", exc)
        return 0
    if count:
        logger.info("Deleted %d expired unconfirmed transactions", count)
    return count


async def task_calculate_metrics(engine: POSEngine, metrics: EngineMetrics) -> None:
    """Count unconfirmed transactions and push to the Prometheus gauge."""
    try:
        count = await engine.repository.count_unconfirmed()
    except StoreError as exc:
        logger.warning("calculate_metrics: %s", exc)
        return
    metrics.set_unconfirmed_count(count)
