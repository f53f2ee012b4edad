"""Errors raised by external collaborators (MoneroPay, the datastore)."""

from __future__ import annotations

from xmr_pos.errors.pos_errors import POSError


class MoneroPayError(POSError):
    """Error from the MoneroPay payment processor."""

    def __init__(self, message: str, *, status_code: int = 502) -> None:
        super().__init__(message, status_code=status_code, code="moneropay-error")


class StoreError(POSError):
    """Error from the transaction store (query failure, disconnect, timeout)."""

    def __init__(self, message: str, *, status_code: int = 500) -> None:
        super().__init__(message, status_code=status_code, code="store-error")
