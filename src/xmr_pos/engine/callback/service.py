"""Callback service: authenticate inbound notifications and merge them.

Two notification paths end in the reconciliation merger:

- MoneroPay callbacks name their transaction through a signed token.
- LWS hooks name nothing; the transaction is resolved by exact amount among
  pending transactions created within ``callback.lws_match_window``. More
  or fewer than one candidate is a hard failure, never a best guess.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any

from xmr_pos.engine.callback.auth import shared_secret_matches, verify_callback_token
from xmr_pos.engine.callback.hooks import normalize_lws_hook
from xmr_pos.errors.definitions import (
    ErrInvalidPayload,
    ErrStalePayload,
    ErrUnauthenticated,
    ErrUnresolvableTransaction,
)
from xmr_pos.errors.pos_errors import POSError
from xmr_pos.errors.service_errors import StoreError

if TYPE_CHECKING:
    from xmr_pos.chain.moneropay.models import ReceiveStatus
    from xmr_pos.config.settings import CallbackConfig
    from xmr_pos.engine.callback.hooks import LwsHookPayload
    from xmr_pos.engine.models.transaction import Transaction
    from xmr_pos.engine.reconcile.merger import ReconciliationService
    from xmr_pos.engine.repository.transactions import TransactionRepository
    from xmr_pos.metrics.collector import EngineMetrics

logger = logging.getLogger(__name__)


class CallbackService:
    """Entry point for MoneroPay callbacks and LWS hooks."""

    def __init__(
        self,
        config: CallbackConfig,
        repository: TransactionRepository,
        reconciler: ReconciliationService,
        *,
        metrics: EngineMetrics | None = None,
    ) -> None:
        self._config = config
        self._repo = repository
        self._reconciler = reconciler
        self._metrics = metrics

    async def handle_callback(self, token: str, status: ReceiveStatus) -> Transaction:
        """Process a MoneroPay callback.

        Args:
            token: The JWT issued for the transaction at checkout.
            status: The callback body as a receive status observation.

        Raises:
            POSError: ``ErrUnauthenticated`` for a bad token, otherwise
                whatever the merger raises.
        """
        try:
            transaction_id = verify_callback_token(token, self._config.jwt_secret)
        except POSError:
            self._count_rejection(ErrUnauthenticated.code, "callback")
            raise
        return await self._reconciler.process_transaction(transaction_id, status)

    async def handle_lws_hook(
        self,
        token: str,
        payload: LwsHookPayload | None,
        *,
        received_at: datetime | None = None,
    ) -> Transaction:
        """Process an LWS hook.

        Checks run in order: shared secret, payload completeness, event
        age, then unique resolution by amount.

        A *payload* of None stands for a body that could not be parsed and
        is rejected as invalid once the secret has been checked.

        Raises:
            POSError: ``ErrUnauthenticated``, ``ErrInvalidPayload``,
                ``ErrStalePayload`` or ``ErrUnresolvableTransaction``, or
                whatever the merger raises.
        """
        now = received_at or datetime.now(tz=UTC)

        if not shared_secret_matches(token, self._config.lws_token):
            raise self._reject(ErrUnauthenticated, "invalid token")

        if payload is None:
            raise self._reject(ErrInvalidPayload, "unparseable body")

        observation = normalize_lws_hook(payload, received_at=now)
        if observation.amount == 0 or not observation.tx_hash:
            raise self._reject(
                ErrInvalidPayload,
                "missing amount/tx_hash (amount=%d, tx_hash=%s)",
                observation.amount,
                observation.tx_hash,
            )

        if now - observation.timestamp > timedelta(seconds=self._config.lws_max_age):
            raise self._reject(
                ErrStalePayload,
                "stale payload ts=%s now=%s",
                observation.timestamp.isoformat(),
                now.isoformat(),
            )

        since = now - timedelta(seconds=self._config.lws_match_window)
        try:
            candidates = await self._repo.find_recent_pending_by_amount(observation.amount, since)
        except StoreError as exc:
            raise self._reject(
                ErrUnresolvableTransaction, "db error resolving by amount: %s", exc
            ) from exc
        if len(candidates) != 1:
            raise self._reject(
                ErrUnresolvableTransaction,
                "ambiguous candidates for amount=%d count=%d",
                observation.amount,
                len(candidates),
            )

        transaction_id = candidates[0].id
        logger.info(
            "lws-hook: matched tx_hash=%s amount=%d to transaction %d",
            observation.tx_hash,
            observation.amount,
            transaction_id,
        )
        return await self._reconciler.process_transaction(
            transaction_id, observation.to_receive_status()
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _reject(self, error: POSError, msg: str, *args: Any) -> POSError:
        logger.warning("lws-hook: " + msg, *args)
        self._count_rejection(error.code, "lws")
        return error

    def _count_rejection(self, reason: str, source: str) -> None:
        if self._metrics:
            self._metrics.record_hook_rejection(source=source, reason=reason)
