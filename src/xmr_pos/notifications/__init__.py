"""Notifications: live transaction updates for POS terminals.

Provides:
- ``NotificationService``: fan-out event bus using asyncio queues
- ``TransactionEvent``: snapshot published after every successful merge
"""

from __future__ import annotations

from xmr_pos.notifications.events import RawEvent, TransactionEvent
from xmr_pos.notifications.service import NotificationService, Subscription

__all__ = [
    "NotificationService",
    "RawEvent",
    "Subscription",
    "TransactionEvent",
]
