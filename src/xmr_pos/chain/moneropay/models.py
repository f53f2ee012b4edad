"""MoneroPay data models: receive status and observed transfers.

``ReceiveStatus`` is the external status observation the reconciliation
engine merges: aggregate coverage plus the list of transfers seen for a
receive address.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an ISO-8601 string or unix seconds into an aware UTC datetime."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=UTC)
    if isinstance(value, int | float):
        return datetime.fromtimestamp(value, tz=UTC)
    parsed = datetime.fromisoformat(str(value))
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)


@dataclass
class ObservedTransfer:
    """One on-chain transfer reported for a receive address.

    Attributes:
        tx_hash: Transfer hash, the deduplication key within a transaction.
        amount: Amount received in piconero.
        confirmations: Confirmation count at observation time.
        fee: Network fee in piconero.
        height: Block height (0 while in the pool).
        timestamp: Time the transfer was first seen.
        unlock_time: Unlock time requested by the sender.
        double_spend_seen: Whether a double spend was observed.
        locked: Whether the funds are still locked.
    """

    tx_hash: str
    amount: int = 0
    confirmations: int = 0
    fee: int = 0
    height: int = 0
    timestamp: datetime | None = None
    unlock_time: int = 0
    double_spend_seen: bool = False
    locked: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ObservedTransfer:
        """Create from a MoneroPay transaction JSON object."""
        return cls(
            tx_hash=data.get("tx_hash", ""),
            amount=data.get("amount", 0),
            confirmations=data.get("confirmations", 0),
            fee=data.get("fee", 0),
            height=data.get("height", 0),
            timestamp=parse_timestamp(data.get("timestamp")),
            unlock_time=data.get("unlock_time", 0),
            double_spend_seen=data.get("double_spend_seen", False),
            locked=data.get("locked", False),
        )

    def as_values(self) -> dict[str, Any]:
        """Column values for a ``SubTransaction`` mirroring this transfer."""
        return {
            "tx_hash": self.tx_hash,
            "amount": self.amount,
            "confirmations": self.confirmations,
            "fee": self.fee,
            "height": self.height,
            "timestamp": self.timestamp,
            "unlock_time": self.unlock_time,
            "double_spend_seen": self.double_spend_seen,
            "locked": self.locked,
        }


@dataclass
class ReceiveStatus:
    """Status of a receive address as reported by MoneroPay.

    Attributes:
        expected: Amount the address expects.
        covered_total: Total received, locked or not.
        covered_unlocked: Received and already unlocked.
        transfers: Transfers observed for the address.
        complete: MoneroPay's own completeness flag (informational).
        description: Description attached when the address was created.
    """

    expected: int = 0
    covered_total: int = 0
    covered_unlocked: int = 0
    transfers: list[ObservedTransfer] = field(default_factory=list)
    complete: bool = False
    description: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ReceiveStatus:
        """Create from a ``GET /receive/{address}`` response.

        A callback body carries a single ``transaction`` object instead of
        the ``transactions`` list; both shapes are accepted.
        """
        amount = data.get("amount") or {}
        covered = amount.get("covered") or {}
        raw_transfers = data.get("transactions")
        if raw_transfers is None:
            single = data.get("transaction")
            raw_transfers = [single] if single else []
        return cls(
            expected=amount.get("expected", 0),
            covered_total=covered.get("total", 0),
            covered_unlocked=covered.get("unlocked", 0),
            transfers=[ObservedTransfer.from_dict(t) for t in raw_transfers],
            complete=data.get("complete", False),
            description=data.get("description", ""),
        )
