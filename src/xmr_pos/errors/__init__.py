"""Error types and pre-defined error instances."""

from xmr_pos.errors.pos_errors import POSError
from xmr_pos.errors.service_errors import MoneroPayError, StoreError

__all__ = ["MoneroPayError", "POSError", "StoreError"]
