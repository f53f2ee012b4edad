"""Transaction and SubTransaction models: POS charges and observed transfers."""

from __future__ import annotations

from datetime import datetime  # noqa: TC003 - SQLAlchemy needs this at runtime for Mapped[datetime]

from sqlalchemy import (
    BigInteger,
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from xmr_pos.engine.models.base import Base, TimestampMixin

# Confirmations after which a transfer is considered final, independent of
# the per-transaction acceptance threshold.
FINALITY_CONFIRMATIONS = 10


class Transaction(Base, TimestampMixin):
    """A charge created at a POS terminal, settled by observed transfers.

    ``accepted`` and ``confirmed`` are derived by the reconciliation engine
    and rewritten on every merge.
    """

    __tablename__ = "transactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    amount: Mapped[int] = mapped_column(
        BigInteger, nullable=False, comment="Expected total in piconero"
    )
    required_confirmations: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, comment="Confirmations needed for acceptance"
    )
    sub_address: Mapped[str | None] = mapped_column(
        String(128), nullable=True, default=None, comment="Receive address, if assigned"
    )
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    accepted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    confirmed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, index=True)

    sub_transactions: Mapped[list[SubTransaction]] = relationship(
        "SubTransaction",
        back_populates="transaction",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="SubTransaction.id",
    )

    def to_dict(self) -> dict:
        """Serialize the transaction and its sub-transactions to plain data."""
        return {
            "id": self.id,
            "amount": self.amount,
            "required_confirmations": self.required_confirmations,
            "sub_address": self.sub_address,
            "description": self.description,
            "accepted": self.accepted,
            "confirmed": self.confirmed,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
            "sub_transactions": [st.to_dict() for st in self.sub_transactions],
        }

    def __repr__(self) -> str:
        return (
            f"<Transaction id={self.id} amount={self.amount} "
            f"accepted={self.accepted} confirmed={self.confirmed}>"
        )


class SubTransaction(Base):
    """One on-chain transfer observed for a transaction, keyed by ``tx_hash``."""

    __tablename__ = "sub_transactions"
    __table_args__ = (UniqueConstraint("transaction_id", "tx_hash", name="uq_sub_tx_hash"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    transaction_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("transactions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    tx_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    amount: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    confirmations: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    fee: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    height: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    timestamp: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    unlock_time: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    double_spend_seen: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    locked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    transaction: Mapped[Transaction] = relationship(
        "Transaction", back_populates="sub_transactions"
    )

    def to_dict(self) -> dict:
        """Serialize to plain data."""
        return {
            "id": self.id,
            "tx_hash": self.tx_hash,
            "amount": self.amount,
            "confirmations": self.confirmations,
            "fee": self.fee,
            "height": self.height,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
            "unlock_time": self.unlock_time,
            "double_spend_seen": self.double_spend_seen,
            "locked": self.locked,
        }

    def __repr__(self) -> str:
        return f"<SubTransaction tx_hash={self.tx_hash[:16]}... confirmations={self.confirmations}>"
