"""MoneroPay HTTP client.

Only two endpoints matter to the settlement engine: ``GET /receive/{address}``
(coverage and transfers of one receive address) and ``GET /health``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx

from xmr_pos.chain.moneropay.models import ReceiveStatus
from xmr_pos.errors.service_errors import MoneroPayError

if TYPE_CHECKING:
    from xmr_pos.config.settings import MoneroPayConfig


class MoneroPayService:
    """Async client for one MoneroPay instance.

    Usage::

        mp = MoneroPayService(config)
        await mp.connect()
        try:
            status = await mp.query_address("8...")
        finally:
            await mp.close()
    """

    def __init__(self, config: MoneroPayConfig) -> None:
        self._config = config
        self._client: httpx.AsyncClient | None = None

    @property
    def is_connected(self) -> bool:
        return self._client is not None

    async def connect(self) -> None:
        self._client = httpx.AsyncClient(
            base_url=self._config.url.rstrip("/"),
            timeout=self._config.timeout,
            headers={"Accept": "application/json"},
        )

    async def close(self) -> None:
        client, self._client = self._client, None
        if client is not None:
            await client.aclose()

    async def query_address(self, address: str) -> ReceiveStatus:
        """Fetch the receive status of *address*.

        Raises:
            MoneroPayError: Transport failure, non-200 answer or a body
                that does not parse as a receive status.
        """
        response = await self._get(f"/receive/{address}", "receive query")
        if response.status_code != httpx.codes.OK:
            raise _api_error(response, "receive query")
        try:
            body = response.json()
            if not isinstance(body, dict):
                msg = f"expected an object, got {type(body).__name__}"
                raise TypeError(msg)
            return ReceiveStatus.from_dict(body)
        except (ValueError, TypeError, AttributeError) as exc:
            raise MoneroPayError(f"MoneroPay returned malformed receive status: {exc}") from exc

    async def health(self) -> bool:
        """True when MoneroPay answers 200 and none of its reported services is down."""
        try:
            response = await self._get("/health", "health check")
        except MoneroPayError:
            return False
        if response.status_code != httpx.codes.OK:
            return False
        try:
            services = response.json().get("services", {})
        except (ValueError, AttributeError):
            return True
        return all(services.values()) if isinstance(services, dict) else True

    async def _get(self, path: str, operation: str) -> httpx.Response:
        if self._client is None:
            msg = "MoneroPay service not connected. Call connect() first."
            raise MoneroPayError(msg, status_code=500)
        try:
            return await self._client.get(path)
        except httpx.HTTPError as exc:
            raise MoneroPayError(f"MoneroPay {operation} failed: {exc}") from exc


def _api_error(response: httpx.Response, operation: str) -> MoneroPayError:
    # MoneroPay errors look like {"status": 404, "message": "..."}
    try:
        detail = response.json().get("message") or response.text
    except (ValueError, AttributeError):
        detail = response.text
    return MoneroPayError(
        f"MoneroPay {operation} failed ({response.status_code}): {detail}",
        status_code=response.status_code,
    )
