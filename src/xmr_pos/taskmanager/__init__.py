"""Task manager: background cron scheduling.

Provides ``TaskManager`` for periodic background tasks such as:
- Sweeping unconfirmed transactions (re-query MoneroPay)
- Deleting transactions left unconfirmed past the retention period
- Metrics calculation (unconfirmed count for Prometheus gauges)
"""

from __future__ import annotations

from xmr_pos.taskmanager.manager import CronJob, JobStats, TaskManager

__all__ = ["CronJob", "JobStats", "TaskManager"]
