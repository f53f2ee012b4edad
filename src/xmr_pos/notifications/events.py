"""Event types for the live transaction feed.

- ``RawEvent``: envelope with type string + JSON content
- ``TransactionEvent``: snapshot of a transaction after a merge
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from xmr_pos.engine.models.transaction import Transaction


@dataclass(frozen=True)
class RawEvent:
    """Generic event envelope sent to subscribers."""

    type: str
    content: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a plain dict."""
        return asdict(self)


@dataclass(frozen=True)
class TransactionEvent(RawEvent):
    """Event emitted when a transaction's settlement state is recomputed.

    ``content`` holds the full serialized transaction, detached from any
    database session.
    """

    type: str = "transaction"
    transaction_id: int = 0
    accepted: bool = False
    confirmed: bool = False

    @classmethod
    def from_transaction(cls, tx: Transaction) -> TransactionEvent:
        """Snapshot *tx* (sub-transactions must be loaded)."""
        return cls(
            transaction_id=tx.id,
            accepted=tx.accepted,
            confirmed=tx.confirmed,
            content=tx.to_dict(),
        )
