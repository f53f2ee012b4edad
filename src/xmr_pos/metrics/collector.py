"""Prometheus instruments for the settlement engine.

Every :class:`EngineMetrics` owns a private ``CollectorRegistry`` so that
several apps (or tests) in one process never collide on metric names.

Exported series:

- ``xmrpos_unconfirmed_transactions``
- ``xmrpos_merge_histogram`` and ``xmrpos_merges_total{outcome}``
- ``xmrpos_hook_rejections_total{source,reason}``
- ``xmrpos_sweep_skips_total{reason}``
- ``xmrpos_cron_histogram{job_name}`` and ``xmrpos_cron_last_execution_gauge{job_name}``
- ``http_request_total`` and ``http_request_duration_seconds``
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from typing import TYPE_CHECKING

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram

if TYPE_CHECKING:
    from collections.abc import Iterator

_PREFIX = "xmrpos"
_APP_LABEL = "xmr-pos"


class EngineMetrics:
    """Named instruments plus the small recording API the engine calls."""

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        self._registry = registry or CollectorRegistry()
        reg = self._registry

        self._unconfirmed = Gauge(
            f"{_PREFIX}_unconfirmed_transactions", "Transactions not yet confirmed", registry=reg
        )
        self._merge = Histogram(
            f"{_PREFIX}_merge_histogram", "Duration of reconciliation merges", registry=reg
        )
        self._merge_outcomes = Counter(
            f"{_PREFIX}_merges", "Reconciliation merges by outcome", ("outcome",), registry=reg
        )
        self._hook_rejections = Counter(
            f"{_PREFIX}_hook_rejections",
            "Inbound notifications rejected before reaching the merger",
            ("source", "reason"),
            registry=reg,
        )
        self._sweep_skips = Counter(
            f"{_PREFIX}_sweep_skips", "Transactions skipped during a sweep", ("reason",), registry=reg
        )

        self._http_requests = Counter(
            "http_request",
            "Total HTTP requests",
            ("method", "path", "status_code", "app"),
            registry=reg,
        )
        self._http_duration = Histogram(
            "http_request_duration_seconds",
            "HTTP request duration in seconds",
            ("method", "path", "app"),
            registry=reg,
        )

        self._cron_histogram = Histogram(
            f"{_PREFIX}_cron_histogram", "Duration of cron job executions", ("job_name",), registry=reg
        )
        self._cron_last = Gauge(
            f"{_PREFIX}_cron_last_execution_gauge",
            "Timestamp of last cron execution",
            ("job_name",),
            registry=reg,
        )

    @property
    def registry(self) -> CollectorRegistry:
        return self._registry

    def set_unconfirmed_count(self, count: int) -> None:
        self._unconfirmed.set(count)

    def record_merge(self, outcome: str) -> None:
        """Count a finished merge; *outcome* is ``ok`` or the error code."""
        self._merge_outcomes.labels(outcome=outcome).inc()

    def record_hook_rejection(self, *, source: str, reason: str) -> None:
        self._hook_rejections.labels(source=source, reason=reason).inc()

    def record_sweep_skip(self, reason: str) -> None:
        self._sweep_skips.labels(reason=reason).inc()

    def observe_request(self, *, method: str, path: str, status_code: int, duration: float) -> None:
        """Record one served HTTP request."""
        self._http_requests.labels(
            method=method, path=path, status_code=str(status_code), app=_APP_LABEL
        ).inc()
        self._http_duration.labels(method=method, path=path, app=_APP_LABEL).observe(duration)

    @contextmanager
    def track_merge(self) -> Iterator[None]:
        start = time.monotonic()
        try:
            yield
        finally:
            self._merge.observe(time.monotonic() - start)

    @contextmanager
    def track_cron(self, job_name: str) -> Iterator[None]:
        """Time a cron run and stamp its last execution, whether or not it raised."""
        start = time.monotonic()
        try:
            yield
        finally:
            self._cron_histogram.labels(job_name=job_name).observe(time.monotonic() - start)
            self._cron_last.labels(job_name=job_name).set(time.time())
