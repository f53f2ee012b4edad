"""Live update feed: fan merged transaction snapshots out to POS terminals.

Publishing only enqueues; a background exchange task routes each event to
the subscriptions interested in it. Delivery is best-effort: an event is
dropped with a warning when the input queue or a subscriber's queue is
full, and nothing is replayed.
"""

from __future__ import annotations

import asyncio
import contextlib
import itertools
import logging
from dataclasses import dataclass, field

from xmr_pos.notifications.events import RawEvent

logger = logging.getLogger(__name__)

_DEFAULT_BUFFER = 100
_ids = itertools.count(1)


@dataclass(eq=False)
class Subscription:
    """A subscriber's queue, optionally narrowed to one transaction."""

    transaction_id: int | None = None
    buffer: int = _DEFAULT_BUFFER
    key: int = field(default_factory=lambda: next(_ids))
    queue: asyncio.Queue[RawEvent] = field(init=False)

    def __post_init__(self) -> None:
        self.queue = asyncio.Queue(maxsize=self.buffer)

    def wants(self, event: RawEvent) -> bool:
        if self.transaction_id is None:
            return True
        return getattr(event, "transaction_id", None) == self.transaction_id


class NotificationService:
    """Asyncio fan-out of settlement events.

    Usage::

        feed = NotificationService()
        await feed.start()
        sub = feed.subscribe(transaction_id=42)
        feed.publish(event)
        event = await sub.queue.get()
        feed.unsubscribe(sub)
        await feed.stop()
    """

    def __init__(self, *, buffer: int = _DEFAULT_BUFFER) -> None:
        self._buffer = buffer
        self._input: asyncio.Queue[RawEvent] = asyncio.Queue(maxsize=buffer)
        self._subscriptions: dict[int, Subscription] = {}
        self._task: asyncio.Task[None] | None = None

    @property
    def is_running(self) -> bool:
        return self._task is not None

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    def subscribe(self, *, transaction_id: int | None = None, buffer: int | None = None) -> Subscription:
        """Register interest in one transaction, or in every event when *transaction_id* is None."""
        sub = Subscription(transaction_id=transaction_id, buffer=buffer or self._buffer)
        self._subscriptions[sub.key] = sub
        return sub

    def unsubscribe(self, sub: Subscription) -> None:
        self._subscriptions.pop(sub.key, None)

    def publish(self, event: RawEvent) -> None:
        """Enqueue *event* and return immediately."""
        try:
            self._input.put_nowait(event)
        except asyncio.QueueFull:
            logger.warning("Notification input queue full, dropping %s event", event.type)

    async def start(self) -> None:
        if self._task is None:
            self._task = asyncio.create_task(self._exchange(), name="notifications")

    async def stop(self) -> None:
        if self._task is None:
            return
        task, self._task = self._task, None
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def _exchange(self) -> None:
        while True:
            event = await self._input.get()
            for sub in list(self._subscriptions.values()):
                if not sub.wants(event):
                    continue
                try:
                    sub.queue.put_nowait(event)
                except asyncio.QueueFull:
                    logger.warning("Subscriber %d queue full, dropping %s event", sub.key, event.type)
