"""Tests for POSEngine lifecycle and service registry."""

from __future__ import annotations

import pytest

from xmr_pos.config.settings import LockScope, NotificationsConfig, ReconcileConfig, TaskConfig
from xmr_pos.engine.client import POSEngine


class TestPOSEngine:
    """Test engine initialization, lifecycle, and health checks."""

    async def test_init(self, app_config) -> None:  # noqa: ASYNC910
        engine = POSEngine(app_config)
        assert not engine.is_initialized
        assert engine.config == app_config

    async def test_initialize_and_close(self, app_config) -> None:
        engine = POSEngine(app_config)

        await engine.initialize()
        assert engine.is_initialized
        assert engine.datastore.is_open
        assert engine.moneropay.is_connected
        assert engine.guard.scope is LockScope.TRANSACTION
        assert engine.notification_service is not None
        assert engine.notification_service.is_running
        assert engine.metrics is not None
        assert engine.task_manager is None

        await engine.close()
        assert not engine.is_initialized

    async def test_double_initialize_raises(self, app_config) -> None:
        engine = POSEngine(app_config)
        await engine.initialize()
        with pytest.raises(RuntimeError, match="already initialized"):
            await engine.initialize()
        await engine.close()

    async def test_close_idempotent(self, app_config) -> None:
        engine = POSEngine(app_config)
        await engine.initialize()
        await engine.close()
        await engine.close()  # Should not raise

    async def test_properties_before_init(self, app_config) -> None:  # noqa: ASYNC910
        engine = POSEngine(app_config)
        for name in ("datastore", "repository", "moneropay", "guard", "reconciler", "callbacks"):
            with pytest.raises(RuntimeError, match="not initialized"):
                getattr(engine, name)

    async def test_global_lock_scope(self, app_config) -> None:
        app_config.reconcile = ReconcileConfig(lock_scope=LockScope.GLOBAL)
        engine = POSEngine(app_config)
        await engine.initialize()
        assert engine.guard.scope is LockScope.GLOBAL
        await engine.close()

    async def test_notifications_disabled(self, app_config) -> None:
        app_config.notifications = NotificationsConfig(enabled=False)
        engine = POSEngine(app_config)
        await engine.initialize()
        assert engine.notification_service is None
        await engine.close()

    async def test_registers_cron_jobs(self, app_config) -> None:
        app_config.task = TaskConfig(
            enabled=True, sweep_interval=3600, retention_interval=3600
        )
        engine = POSEngine(app_config)
        await engine.initialize()

        assert engine.task_manager is not None
        assert engine.task_manager.is_running
        assert set(engine.task_manager.jobs) == {
            "sweep_unconfirmed",
            "cleanup_expired_transactions",
            "calculate_metrics",
        }

        await engine.close()
        assert engine.task_manager is None

    async def test_retention_can_be_disabled(self, app_config) -> None:
        app_config.task = TaskConfig(enabled=True, retention_enabled=False, sweep_interval=3600)
        engine = POSEngine(app_config)
        await engine.initialize()
        assert "cleanup_expired_transactions" not in engine.task_manager.jobs
        await engine.close()

    async def test_health_check(self, app_config) -> None:
        engine = POSEngine(app_config)
        status = await engine.health_check()
        assert status["engine"] == "not_initialized"

        await engine.initialize()
        status = await engine.health_check()
        assert status["engine"] == "ok"
        assert status["datastore"] == "ok"
        assert status["moneropay"] in ("ok", "error")
        await engine.close()
