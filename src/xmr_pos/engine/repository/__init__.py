"""Data access layer."""

from xmr_pos.engine.repository.transactions import TransactionRepository

__all__ = ["TransactionRepository"]
