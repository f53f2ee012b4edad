"""Settlement data models (SQLAlchemy ORM).

Import :data:`ALL_MODELS` for table creation.
"""

from xmr_pos.engine.models.base import Base, TimestampMixin
from xmr_pos.engine.models.transaction import (
    FINALITY_CONFIRMATIONS,
    SubTransaction,
    Transaction,
)

ALL_MODELS: list[type[Base]] = [
    Transaction,
    SubTransaction,
]

__all__ = [
    "ALL_MODELS",
    "FINALITY_CONFIRMATIONS",
    "Base",
    "SubTransaction",
    "TimestampMixin",
    "Transaction",
]
