"""POSEngine: owns the datastore, the MoneroPay client and every service built on them."""

from __future__ import annotations

import logging
from functools import partial
from typing import TYPE_CHECKING, TypeVar

if TYPE_CHECKING:
    from collections.abc import Iterator

    from xmr_pos.chain.moneropay.service import MoneroPayService
    from xmr_pos.config.settings import AppConfig
    from xmr_pos.datastore.client import Datastore
    from xmr_pos.engine.callback.service import CallbackService
    from xmr_pos.engine.reconcile.guard import ReconcileGuard
    from xmr_pos.engine.reconcile.merger import ReconciliationService
    from xmr_pos.engine.repository.transactions import TransactionRepository
    from xmr_pos.metrics.collector import EngineMetrics
    from xmr_pos.notifications.service import NotificationService
    from xmr_pos.taskmanager.manager import CronJob, TaskManager

logger = logging.getLogger(__name__)

_T = TypeVar("_T")


def _require(service: _T | None, name: str) -> _T:
    if service is None:
        msg = f"Engine not initialized ({name} unavailable). Call initialize() first."
        raise RuntimeError(msg)
    return service


class POSEngine:
    """Wires the point-of-sale backend together.

    :meth:`initialize` opens the datastore, connects to MoneroPay, starts
    the live update feed, builds the reconciliation services and schedules
    the cron jobs. :meth:`close` tears them down in reverse order.

    Args:
        config: Application configuration.
        metrics: Prometheus metrics to record into. One is created on
            initialize when metrics are enabled and none is given.
    """

    def __init__(self, config: AppConfig, *, metrics: EngineMetrics | None = None) -> None:
        self._config = config
        self._metrics = metrics
        self._initialized = False

        self._datastore: Datastore | None = None
        self._moneropay: MoneroPayService | None = None
        self._notifications: NotificationService | None = None
        self._repository: TransactionRepository | None = None
        self._guard: ReconcileGuard | None = None
        self._reconciler: ReconciliationService | None = None
        self._callbacks: CallbackService | None = None
        self._task_manager: TaskManager | None = None

    async def initialize(self) -> None:
        """Bring every service up.

        Raises:
            RuntimeError: If already initialized.
        """
        if self._initialized:
            msg = "Engine already initialized"
            raise RuntimeError(msg)

        # Deferred so that importing the engine stays cheap for the API layer.
        from xmr_pos.chain.moneropay.service import MoneroPayService
        from xmr_pos.datastore.client import Datastore
        from xmr_pos.engine.callback.service import CallbackService
        from xmr_pos.engine.reconcile.guard import ReconcileGuard
        from xmr_pos.engine.reconcile.merger import ReconciliationService
        from xmr_pos.engine.repository.transactions import TransactionRepository
        from xmr_pos.metrics.collector import EngineMetrics
        from xmr_pos.notifications.service import NotificationService

        cfg = self._config
        if self._metrics is None and cfg.metrics.enabled:
            self._metrics = EngineMetrics()

        self._datastore = Datastore(cfg.db)
        await self._datastore.open()

        self._moneropay = MoneroPayService(cfg.moneropay)
        await self._moneropay.connect()

        if cfg.notifications.enabled:
            self._notifications = NotificationService(buffer=cfg.notifications.buffer)
            await self._notifications.start()

        self._repository = TransactionRepository(self._datastore)
        self._guard = ReconcileGuard(cfg.reconcile.lock_scope)
        self._reconciler = ReconciliationService(
            self._repository, self._guard, notifier=self._notifications, metrics=self._metrics
        )
        self._callbacks = CallbackService(
            cfg.callback, self._repository, self._reconciler, metrics=self._metrics
        )

        if cfg.task.enabled:
            from xmr_pos.taskmanager.manager import TaskManager

            self._task_manager = TaskManager(metrics=self._metrics)
            for job in self._cron_jobs():
                self._task_manager.register(job)
            await self._task_manager.start()

        self._initialized = True
        logger.info("POS engine initialized (lock scope: %s)", self._guard.scope.value)

    def _cron_jobs(self) -> Iterator[CronJob]:
        from xmr_pos.taskmanager.manager import CronJob
        from xmr_pos.taskmanager.tasks import (
            task_calculate_metrics,
            task_cleanup_expired_transactions,
            task_sweep_unconfirmed,
        )

        tasks = self._config.task
        yield CronJob(
            "sweep_unconfirmed",
            partial(task_sweep_unconfirmed, self),
            period=tasks.sweep_interval,
            run_immediately=True,
        )
        if tasks.retention_enabled:
            yield CronJob(
                "cleanup_expired_transactions",
                partial(task_cleanup_expired_transactions, self),
                period=tasks.retention_interval,
            )
        if self._metrics is not None:
            yield CronJob(
                "calculate_metrics",
                partial(task_calculate_metrics, self, self._metrics),
                period=self._config.metrics.period,
                run_immediately=True,
            )

    async def close(self) -> None:
        """Stop everything :meth:`initialize` started. Safe to call twice."""
        if not self._initialized:
            return
        self._initialized = False

        # Cron jobs use every other service, so they go first.
        if self._task_manager is not None:
            await self._task_manager.stop()
        if self._notifications is not None:
            await self._notifications.stop()
        if self._moneropay is not None:
            await self._moneropay.close()
        if self._datastore is not None:
            await self._datastore.close()

        self._task_manager = self._notifications = None
        self._callbacks = self._reconciler = self._guard = self._repository = None
        self._moneropay = self._datastore = None
        logger.info("POS engine closed")

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    @property
    def config(self) -> AppConfig:
        return self._config

    @property
    def datastore(self) -> Datastore:
        return _require(self._datastore, "datastore")

    @property
    def repository(self) -> TransactionRepository:
        return _require(self._repository, "repository")

    @property
    def moneropay(self) -> MoneroPayService:
        return _require(self._moneropay, "moneropay")

    @property
    def guard(self) -> ReconcileGuard:
        return _require(self._guard, "guard")

    @property
    def reconciler(self) -> ReconciliationService:
        return _require(self._reconciler, "reconciler")

    @property
    def callbacks(self) -> CallbackService:
        return _require(self._callbacks, "callbacks")

    @property
    def notification_service(self) -> NotificationService | None:
        """Live update feed, or None when notifications are disabled."""
        return self._notifications

    @property
    def metrics(self) -> EngineMetrics | None:
        return self._metrics

    @property
    def task_manager(self) -> TaskManager | None:
        """Cron scheduler, or None when tasks are disabled."""
        return self._task_manager

    async def health_check(self) -> dict[str, str]:
        """Component statuses: ``ok``, ``error`` or ``not_initialized``."""
        if not self._initialized:
            return {"engine": "not_initialized", "datastore": "unknown", "moneropay": "unknown"}

        datastore_ok = await self.datastore.ping()
        moneropay_ok = await self.moneropay.health()
        return {
            "engine": "ok",
            "datastore": "ok" if datastore_ok else "error",
            "moneropay": "ok" if moneropay_ok else "error",
        }
