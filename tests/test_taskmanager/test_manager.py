"""Cron scheduling lifecycle."""

from __future__ import annotations

import asyncio

from xmr_pos.metrics.collector import EngineMetrics
from xmr_pos.taskmanager.manager import CronJob, TaskManager


def _counter(calls: list[int], *, fail: bool = False):
    async def handler() -> None:
        calls.append(1)
        if fail:
            raise RuntimeError("boom")

    return handler


class TestTaskManager:
    async def test_register(self) -> None:  # noqa: ASYNC910
        tm = TaskManager()
        tm.register(CronJob("sweep", _counter([]), period=60))
        assert set(tm.jobs) == {"sweep"}
        assert tm.is_running is False

    async def test_run_immediately(self) -> None:
        calls: list[int] = []
        tm = TaskManager()
        tm.register(CronJob("now", _counter(calls), period=60, run_immediately=True))
        await tm.start()
        await asyncio.sleep(0.05)
        await tm.stop()
        assert calls == [1]

    async def test_waits_one_period_by_default(self) -> None:
        calls: list[int] = []
        tm = TaskManager()
        tm.register(CronJob("later", _counter(calls), period=60))
        await tm.start()
        await asyncio.sleep(0.05)
        await tm.stop()
        assert calls == []

    async def test_periodic(self) -> None:
        calls: list[int] = []
        tm = TaskManager()
        tm.register(CronJob("tick", _counter(calls), period=0.01))
        await tm.start()
        await asyncio.sleep(0.1)
        await tm.stop()
        assert len(calls) >= 2

    async def test_failure_does_not_stop_schedule(self) -> None:
        calls: list[int] = []
        tm = TaskManager()
        tm.register(CronJob("flaky", _counter(calls, fail=True), period=0.01, run_immediately=True))
        await tm.start()
        await asyncio.sleep(0.1)
        await tm.stop()

        stats = tm.stats("flaky")
        assert len(calls) >= 2
        assert stats.runs == len(calls)
        assert stats.failures == stats.runs
        assert stats.last_error == "boom"

    async def test_start_stop_idempotent(self) -> None:
        tm = TaskManager()
        await tm.start()
        await tm.start()
        assert tm.is_running is True
        await tm.stop()
        await tm.stop()
        assert tm.is_running is False

    async def test_register_while_running(self) -> None:
        calls: list[int] = []
        tm = TaskManager()
        await tm.start()
        tm.register(CronJob("late", _counter(calls), period=60, run_immediately=True))
        await asyncio.sleep(0.05)
        await tm.stop()
        assert calls == [1]

    async def test_register_replaces_job(self) -> None:
        first: list[int] = []
        second: list[int] = []
        tm = TaskManager()
        tm.register(CronJob("job", _counter(first), period=60))
        await tm.start()
        tm.register(CronJob("job", _counter(second), period=60, run_immediately=True))
        await asyncio.sleep(0.05)
        await tm.stop()
        assert first == []
        assert second == [1]

    async def test_records_cron_metrics(self) -> None:
        metrics = EngineMetrics()
        tm = TaskManager(metrics=metrics)
        tm.register(CronJob("sweep", _counter([]), period=60, run_immediately=True))
        await tm.start()
        await asyncio.sleep(0.05)
        await tm.stop()
        assert (
            metrics.registry.get_sample_value("xmrpos_cron_histogram_count", {"job_name": "sweep"})
            == 1.0
        )
