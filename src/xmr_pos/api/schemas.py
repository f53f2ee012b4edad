"""API request schemas (Pydantic models)."""

from __future__ import annotations

from datetime import datetime  # noqa: TC003 - Pydantic needs this at runtime
from typing import Any

from pydantic import BaseModel, Field

from xmr_pos.chain.moneropay.models import ReceiveStatus
from xmr_pos.engine.callback.hooks import LwsHookPayload, LwsTxInfo

# ---------------------------------------------------------------------------
# MoneroPay callback
# ---------------------------------------------------------------------------


class CoveredAmount(BaseModel):
    """Received amounts for a receive address."""

    total: int = 0
    unlocked: int = 0


class ReceiveAmount(BaseModel):
    """Expected vs. covered amounts."""

    expected: int = 0
    covered: CoveredAmount = Field(default_factory=CoveredAmount)


class TransferPayload(BaseModel):
    """One transfer as MoneroPay reports it."""

    amount: int = 0
    confirmations: int = 0
    double_spend_seen: bool = False
    fee: int = 0
    height: int = 0
    timestamp: datetime | None = None
    tx_hash: str = ""
    unlock_time: int = 0
    locked: bool = False


class MoneroPayCallbackRequest(BaseModel):
    """Body MoneroPay POSTs to the callback URL of a receive address.

    The callback carries the transfer that triggered it in ``transaction``;
    a full ``transactions`` list is accepted as well.
    """

    amount: ReceiveAmount = Field(default_factory=ReceiveAmount)
    complete: bool = False
    description: str = ""
    created_at: datetime | None = None
    transaction: TransferPayload | None = None
    transactions: list[TransferPayload] | None = None

    def to_receive_status(self) -> ReceiveStatus:
        """Convert to the observation the merger consumes."""
        return ReceiveStatus.from_dict(self.model_dump(exclude_none=True))


# ---------------------------------------------------------------------------
# LWS webhook
# ---------------------------------------------------------------------------


class LwsTxInfoRequest(BaseModel):
    """Nested ``tx_info`` transfer record."""

    amount: int = 0
    tx_hash: str = ""
    timestamp: int = 0
    block: int | None = None
    unlock_time: int = 0
    coinbase: bool = False
    payment_id: str = ""


class LwsHookRequest(BaseModel):
    """Body of an LWS webhook (flat, nested, or both)."""

    event: str = ""
    payment_id: str = ""
    token: str = ""
    confirmations: int = 0
    event_id: str = ""
    id: str = ""
    amount: int = 0
    height: int | None = None
    tx_hash: str = ""
    timestamp: datetime | None = None
    tx_info: LwsTxInfoRequest | None = None
    extra: Any = None

    def to_payload(self) -> LwsHookPayload:
        """Convert to the domain payload."""
        tx_info = None
        if self.tx_info is not None:
            tx_info = LwsTxInfo(
                amount=self.tx_info.amount,
                tx_hash=self.tx_info.tx_hash,
                timestamp=self.tx_info.timestamp,
                block=self.tx_info.block,
                unlock_time=self.tx_info.unlock_time,
                coinbase=self.tx_info.coinbase,
            )
        return LwsHookPayload(
            event=self.event,
            amount=self.amount,
            tx_hash=self.tx_hash,
            confirmations=self.confirmations,
            height=self.height,
            timestamp=self.timestamp,
            payment_id=self.payment_id,
            tx_info=tx_info,
        )


class ErrorResponse(BaseModel):
    """Standard error response."""

    code: str
    message: str
