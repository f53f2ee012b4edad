"""Cron scheduling on asyncio tasks.

Jobs run at a fixed rate: a tick that overruns its period is followed
immediately by the next one instead of drifting the schedule. A failing
run is logged and counted; the job keeps its schedule.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from xmr_pos.metrics.collector import EngineMetrics

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CronJob:
    """A named coroutine run every *period* seconds."""

    name: str
    handler: Callable[[], Awaitable[object]]
    period: float
    run_immediately: bool = False


@dataclass
class JobStats:
    """Run history of one job since the manager started."""

    runs: int = 0
    failures: int = 0
    last_error: str = ""


class TaskManager:
    """Runs registered cron jobs until stopped.

    Usage::

        tm = TaskManager(metrics=engine_metrics)
        tm.register(CronJob("sweep_unconfirmed", handler, period=30, run_immediately=True))
        await tm.start()
        ...
        await tm.stop()
    """

    def __init__(self, *, metrics: EngineMetrics | None = None) -> None:
        self._metrics = metrics
        self._jobs: dict[str, CronJob] = {}
        self._stats: dict[str, JobStats] = {}
        self._tasks: dict[str, asyncio.Task[None]] = {}
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def jobs(self) -> dict[str, CronJob]:
        return dict(self._jobs)

    def stats(self, name: str) -> JobStats:
        """Run history for *name* (empty if it never ran)."""
        return self._stats.setdefault(name, JobStats())

    def register(self, job: CronJob) -> None:
        """Add *job*, replacing any job of the same name.

        Jobs registered while the manager is running are scheduled at once.
        """
        if job.name in self._tasks:
            self._tasks.pop(job.name).cancel()
        self._jobs[job.name] = job
        if self._running:
            self._spawn(job)

    async def start(self) -> None:
        if self._running:
            return
        self._running = True
        for job in self._jobs.values():
            self._spawn(job)
        logger.info("TaskManager started: %s", ", ".join(sorted(self._jobs)) or "no jobs")

    async def stop(self) -> None:
        """Cancel every job and wait for them to unwind."""
        if not self._running:
            return
        self._running = False
        tasks = list(self._tasks.values())
        self._tasks.clear()
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        logger.info("TaskManager stopped")

    def _spawn(self, job: CronJob) -> None:
        self._tasks[job.name] = asyncio.create_task(self._schedule(job), name=f"cron:{job.name}")

    async def _schedule(self, job: CronJob) -> None:
        next_run = time.monotonic() + (0 if job.run_immediately else job.period)
        while True:
            delay = next_run - time.monotonic()
            if delay > 0:
                await asyncio.sleep(delay)
            await self._run_once(job)
            next_run = max(next_run + job.period, time.monotonic())

    async def _run_once(self, job: CronJob) -> None:
        stats = self.stats(job.name)
        stats.runs += 1
        try:
            if self._metrics:
                with self._metrics.track_cron(job.name):
                    await job.handler()
            else:
                await job.handler()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            stats.failures += 1
            stats.last_error = str(exc)
            logger.exception("Cron job %r failed", job.name)
