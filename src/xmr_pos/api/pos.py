"""POS live feed: push transaction updates to a terminal over WebSocket.

On connect the terminal receives the transaction's current state, then
every update the merger publishes for it until it disconnects.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Annotated

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect, status

from xmr_pos.api.dependencies import get_engine
from xmr_pos.engine.client import POSEngine  # noqa: TC001
from xmr_pos.errors.service_errors import StoreError
from xmr_pos.notifications.events import TransactionEvent

if TYPE_CHECKING:
    from xmr_pos.notifications.service import Subscription

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/pos", tags=["pos"])


@router.websocket("/transactions/{transaction_id}/ws")
async def transaction_feed(
    websocket: WebSocket,
    transaction_id: int,
    engine: Annotated[POSEngine, Depends(get_engine)],
) -> None:
    """Stream settlement updates for *transaction_id*.

    The subscription is opened before the snapshot is read, so an update
    merged while the snapshot loads is still delivered afterwards.
    """
    notifier = engine.notification_service
    sub = notifier.subscribe(transaction_id=transaction_id) if notifier else None
    forward: asyncio.Task[None] | None = None
    try:
        try:
            tx = await engine.repository.find_by_id(transaction_id)
        except StoreError:
            logger.exception("pos-feed: failed to load transaction %d", transaction_id)
            await websocket.close(code=status.WS_1011_INTERNAL_ERROR)
            return
        if tx is None:
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason="transaction not found")
            return

        await websocket.accept()
        await websocket.send_json(TransactionEvent.from_transaction(tx).to_dict())
        if sub is not None:
            forward = asyncio.create_task(_forward(websocket, sub))
        # Inbound frames are ignored; the loop only waits for the disconnect.
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.debug("pos-feed: terminal for transaction %d disconnected", transaction_id)
    finally:
        if forward is not None:
            forward.cancel()
            await asyncio.gather(forward, return_exceptions=True)
        if sub is not None:
            notifier.unsubscribe(sub)


async def _forward(websocket: WebSocket, sub: Subscription) -> None:
    while True:
        event = await sub.queue.get()
        if isinstance(event, TransactionEvent):
            await websocket.send_json(event.to_dict())
