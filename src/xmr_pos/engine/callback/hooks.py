"""LWS hook payloads and their normalization.

The light wallet server reports a receive either with flat fields, with a
nested ``tx_info`` transfer record, or with both. ``normalize_lws_hook``
is the one place the precedence rule lives: flat values win when they are
set (non-zero / non-empty), the nested record fills the gaps.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime

from xmr_pos.chain.moneropay.models import ObservedTransfer, ReceiveStatus, parse_timestamp


@dataclass(frozen=True)
class LwsTxInfo:
    """Nested transfer record (``tx_info``)."""

    amount: int = 0
    tx_hash: str = ""
    timestamp: int = 0  # unix seconds
    block: int | None = None
    unlock_time: int = 0
    coinbase: bool = False


@dataclass(frozen=True)
class LwsHookPayload:
    """An LWS webhook body. ``tx_info`` is present for the nested variant."""

    event: str = ""
    amount: int = 0
    tx_hash: str = ""
    confirmations: int = 0
    height: int | None = None
    timestamp: datetime | None = None
    payment_id: str = ""
    tx_info: LwsTxInfo | None = None


@dataclass(frozen=True)
class HookObservation:
    """A normalized LWS observation, independent of payload shape."""

    amount: int
    tx_hash: str
    confirmations: int
    height: int
    timestamp: datetime

    def to_receive_status(self) -> ReceiveStatus:
        """Synthesize a single-transfer status covering exactly the observed amount."""
        return ReceiveStatus(
            expected=self.amount,
            covered_total=self.amount,
            covered_unlocked=0,
            transfers=[
                ObservedTransfer(
                    tx_hash=self.tx_hash,
                    amount=self.amount,
                    confirmations=self.confirmations,
                    fee=0,
                    height=self.height,
                    timestamp=self.timestamp,
                    unlock_time=0,
                    double_spend_seen=False,
                    locked=self.confirmations == 0,
                )
            ],
        )


def normalize_lws_hook(payload: LwsHookPayload, *, received_at: datetime) -> HookObservation:
    """Resolve amount, hash, height and event time from either payload shape.

    The event time falls back to *received_at* when neither shape carries one.
    """
    amount = payload.amount
    tx_hash = payload.tx_hash
    timestamp = received_at
    height = 0

    nested = payload.tx_info
    if nested is not None:
        if amount == 0:
            amount = nested.amount
        if not tx_hash:
            tx_hash = nested.tx_hash
        if nested.timestamp > 0:
            timestamp = datetime.fromtimestamp(nested.timestamp, tz=UTC)

    if payload.timestamp is not None:
        timestamp = parse_timestamp(payload.timestamp) or timestamp

    if payload.height is not None:
        height = payload.height
    elif nested is not None and nested.block is not None:
        height = nested.block

    return HookObservation(
        amount=amount,
        tx_hash=tx_hash,
        confirmations=payload.confirmations,
        height=height,
        timestamp=timestamp,
    )
