"""Inbound notification routes: MoneroPay callbacks and LWS hooks.

Both endpoints are called by external services; the path token is the
only credential. Each request runs under ``callback.request_timeout``.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Request
from pydantic import ValidationError

from xmr_pos.api.dependencies import get_engine
from xmr_pos.api.schemas import LwsHookRequest, MoneroPayCallbackRequest
from xmr_pos.engine.callback.hooks import LwsHookPayload
from xmr_pos.engine.client import POSEngine  # noqa: TC001
from xmr_pos.errors.definitions import ErrRequestTimeout

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/callback", tags=["callbacks"])


@router.post("/receive/{token}", status_code=200)
async def receive_callback(
    token: str,
    body: MoneroPayCallbackRequest,
    engine: Annotated[POSEngine, Depends(get_engine)],
) -> dict[str, str]:
    """Handle a MoneroPay receive callback for the transaction named by *token*."""
    try:
        async with asyncio.timeout(engine.config.callback.request_timeout):
            await engine.callbacks.handle_callback(token, body.to_receive_status())
    except TimeoutError as exc:
        logger.warning("callback: request deadline exceeded")
        raise ErrRequestTimeout from exc
    return {}


@router.post("/lws/{token}", status_code=200)
async def lws_hook(
    token: str,
    request: Request,
    engine: Annotated[POSEngine, Depends(get_engine)],
) -> dict[str, str]:
    """Handle an LWS webhook; the transaction is resolved by amount.

    The body is parsed by hand so that the shared secret is checked before
    a malformed body is reported (as ``invalid-payload``, not a 422).
    """
    payload = await _parse_lws_body(request)
    try:
        async with asyncio.timeout(engine.config.callback.request_timeout):
            await engine.callbacks.handle_lws_hook(token, payload)
    except TimeoutError as exc:
        logger.warning("lws-hook: request deadline exceeded")
        raise ErrRequestTimeout from exc
    return {}


async def _parse_lws_body(request: Request) -> LwsHookPayload | None:
    try:
        return LwsHookRequest.model_validate_json(await request.body()).to_payload()
    except ValidationError as exc:
        logger.debug("lws-hook: unparseable body: %s", exc)
        return None
