"""Retention job purging read notifications and acknowledged alerts."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
import logging

from .observability import PriorityMetrics, log_event
from .repositories import AlertStore, NotificationStore

logger = logging.getLogger("order_priority.cleanup")


@dataclass(frozen=True)
class CleanupResult:
    notifications_deleted: int
    alerts_deleted: int
    cutoff: datetime

    @property
    def total_deleted(self) -> int:
        return self.notifications_deleted + self.alerts_deleted


class RetentionCleanupJob:
    """Deletes artifacts older than the retention window.

    Unread notifications and unacknowledged alerts are never removed.
    """

    def __init__(
        self,
        *,
        notifications: NotificationStore,
        alerts: AlertStore,
        metrics: PriorityMetrics,
        retention_days: int = 30,
        interval_seconds: float = 3600,
        pass_timeout_seconds: float = 30.0,
    ) -> None:
        self._notifications = notifications
        self._alerts = alerts
        self._metrics = metrics
        self._retention_days = retention_days
        self._interval_seconds = interval_seconds
        self._pass_timeout_seconds = pass_timeout_seconds

    def run_once(self, now: datetime | None = None) -> CleanupResult:
        cutoff = (now or datetime.now(tz=timezone.utc)) - timedelta(days=self._retention_days)
        result = CleanupResult(
            notifications_deleted=self._notifications.delete_older_than(cutoff),
            alerts_deleted=self._alerts.delete_older_than(cutoff),
            cutoff=cutoff,
        )
        self._metrics.increment("cleanup_runs_total")
        self._metrics.increment("cleanup_deleted_total", result.total_deleted)
        log_event(
            logger,
            "retention_cleanup_completed",
            cutoff=cutoff.isoformat(),
            notifications_deleted=result.notifications_deleted,
            alerts_deleted=result.alerts_deleted,
        )
        return result

    async def run(self) -> None:
        """Run a pass every interval, each time-boxed to `pass_timeout_seconds`.

        A timed-out pass keeps deleting in its worker thread; later ticks are
        skipped until that thread finishes, so passes never overlap.
        """

        interval_seconds = max(self._interval_seconds, 1)
        pending: asyncio.Task | None = None
        while True:
            if pending is not None and not pending.done():
                log_event(logger, "retention_cleanup_skipped", reason="previous pass still running")
            else:
                pending = asyncio.create_task(asyncio.to_thread(self.run_once))
                pending.add_done_callback(self._log_pass_failure)
                done, _ = await asyncio.wait({pending}, timeout=self._pass_timeout_seconds)
                if not done:
                    log_event(
                        logger,
                        "retention_cleanup_timed_out",
                        timeout_seconds=self._pass_timeout_seconds,
                    )
            await asyncio.sleep(interval_seconds)

    @staticmethod
    def _log_pass_failure(task: asyncio.Task) -> None:
        if task.cancelled() or task.exception() is None:
            return
        exc = task.exception()
        log_event(logger, "retention_cleanup_failed", error=f"{type(exc).__name__}: {exc}")
