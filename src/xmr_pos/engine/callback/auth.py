"""Credential checks for inbound notifications.

MoneroPay callbacks carry an HMAC-signed JWT (issued at checkout and
embedded in the callback URL) whose ``transaction_id`` claim names the
transaction. LWS hooks carry a shared secret compared verbatim.
"""

from __future__ import annotations

import hmac
import logging
from datetime import UTC, datetime, timedelta

import jwt

from xmr_pos.errors.definitions import ErrUnauthenticated

logger = logging.getLogger(__name__)

TRANSACTION_ID_CLAIM = "transaction_id"

_HMAC_ALGORITHMS = ["HS256", "HS384", "HS512"]


def sign_callback_token(
    secret: str,
    transaction_id: int,
    *,
    expires_in: float | None = None,
) -> str:
    """Issue the callback token for *transaction_id*.

    Args:
        secret: Shared HMAC secret (``callback.jwt_secret``).
        transaction_id: Transaction the callback will settle.
        expires_in: Optional lifetime in seconds (adds an ``exp`` claim).
    """
    claims: dict[str, object] = {TRANSACTION_ID_CLAIM: transaction_id}
    if expires_in is not None:
        claims["exp"] = datetime.now(tz=UTC) + timedelta(seconds=expires_in)
    return jwt.encode(claims, secret, algorithm="HS256")


def verify_callback_token(token: str, secret: str) -> int:
    """Verify a callback token and return its transaction id.

    Raises:
        POSError: ``ErrUnauthenticated`` if the token is missing, malformed,
            not HMAC-signed, fails verification, has expired, or carries no
            integer ``transaction_id`` claim.
    """
    if not token:
        logger.warning("callback: missing token")
        raise ErrUnauthenticated
    if not secret:
        logger.error("callback: no JWT secret configured, rejecting")
        raise ErrUnauthenticated

    try:
        claims = jwt.decode(token, secret, algorithms=_HMAC_ALGORITHMS)
    except jwt.InvalidTokenError as exc:
        logger.warning("callback: invalid token: %s", exc)
        raise ErrUnauthenticated from exc

    transaction_id = claims.get(TRANSACTION_ID_CLAIM)
    if isinstance(transaction_id, bool) or not isinstance(transaction_id, int):
        logger.warning("callback: token has no usable %s claim", TRANSACTION_ID_CLAIM)
        raise ErrUnauthenticated
    return transaction_id


def shared_secret_matches(token: str, expected: str) -> bool:
    """Constant-time comparison; an unset secret matches nothing."""
    if not expected:
        return False
    return hmac.compare_digest(token.encode("utf-8"), expected.encode("utf-8"))
