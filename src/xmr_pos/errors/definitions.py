"""Error definitions for the settlement engine."""

from __future__ import annotations

from xmr_pos.errors.pos_errors import POSError

# -- Authentication --------------------------------------------------------

ErrUnauthenticated = POSError("invalid or missing token", status_code=401, code="unauthenticated")
ErrStalePayload = POSError("stale LWS payload", status_code=401, code="stale-payload")
ErrUnresolvableTransaction = POSError(
    "unable to uniquely resolve transaction for LWS hook",
    status_code=401,
    code="unresolvable-transaction",
)

# -- Validation ------------------------------------------------------------

ErrInvalidPayload = POSError(
    "amount and tx_hash are required", status_code=400, code="invalid-payload"
)

# -- Not Found -------------------------------------------------------------

ErrTransactionNotFound = POSError(
    "transaction not found", status_code=404, code="transaction-not-found"
)

# -- Internal --------------------------------------------------------------

ErrInternal = POSError("failed to persist transaction", status_code=500, code="internal-error")
ErrRequestTimeout = POSError("request deadline exceeded", status_code=504, code="request-timeout")
