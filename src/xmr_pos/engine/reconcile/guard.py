"""Reconciliation critical section.

Every merge runs inside ``ReconcileGuard.hold(transaction_id)``. With the
``transaction`` scope each transaction id gets its own ``asyncio.Lock``
(created on demand, discarded once no task holds or awaits it); with the
``global`` scope a single lock serializes all reconciliation activity.

Holding is re-entrant within a task: a sweep that already holds the scope
for a transaction can call into the merger, which asks for the same scope
again, without deadlocking.
"""

from __future__ import annotations

import asyncio
import contextlib
from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from xmr_pos.config.settings import LockScope

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

_GLOBAL_KEY = "*"

# (guard id, key) pairs held by the current task.
_held: ContextVar[frozenset[tuple[int, Any]]] = ContextVar("reconcile_held", default=frozenset())


@dataclass
class _LockEntry:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    users: int = 0


class ReconcileGuard:
    """Mutual exclusion for reconciliation merges.

    Usage::

        guard = ReconcileGuard(LockScope.TRANSACTION)
        async with guard.hold(tx_id):
            ...  # load → upsert sub-transactions → recompute → persist
    """

    def __init__(self, scope: LockScope = LockScope.TRANSACTION) -> None:
        self._scope = scope
        self._locks: dict[Any, _LockEntry] = {}

    @property
    def scope(self) -> LockScope:
        """The configured lock granularity."""
        return self._scope

    @property
    def active_keys(self) -> int:
        """Number of keys currently held or awaited."""
        return len(self._locks)

    def is_locked(self, transaction_id: int) -> bool:
        """Whether the scope covering *transaction_id* is currently held."""
        entry = self._locks.get(self._key(transaction_id))
        return entry is not None and entry.lock.locked()

    @contextlib.asynccontextmanager
    async def hold(self, transaction_id: int) -> AsyncIterator[None]:
        """Hold the critical section covering *transaction_id*."""
        async with self._hold_key(self._key(transaction_id)):
            yield

    @contextlib.asynccontextmanager
    async def hold_all(self) -> AsyncIterator[None]:
        """Hold the process-wide lock when the scope is global; no-op otherwise."""
        if self._scope is LockScope.GLOBAL:
            async with self._hold_key(_GLOBAL_KEY):
                yield
        else:
            yield

    def _key(self, transaction_id: int) -> Any:
        return _GLOBAL_KEY if self._scope is LockScope.GLOBAL else transaction_id

    @contextlib.asynccontextmanager
    async def _hold_key(self, key: Any) -> AsyncIterator[None]:
        held = _held.get()
        marker = (id(self), key)
        if marker in held or (id(self), _GLOBAL_KEY) in held:
            yield
            return

        entry = self._locks.get(key)
        if entry is None:
            entry = self._locks[key] = _LockEntry()
        entry.users += 1
        try:
            async with entry.lock:
                token = _held.set(held | {marker})
                try:
                    yield
                finally:
                    _held.reset(token)
        finally:
            entry.users -= 1
            if entry.users == 0:
                self._locks.pop(key, None)
