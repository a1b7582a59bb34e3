"""Tests for the retention cleanup job."""

import asyncio
from datetime import datetime, timedelta, timezone
import logging
import threading
import time

from order_priority.cleanup import RetentionCleanupJob
from order_priority.models import OrderNotification, PriorityAlert

NOW = datetime(2026, 6, 30, 8, 0, tzinfo=timezone.utc)


def _notification(order_id: str, *, age_days: int, is_read: bool) -> OrderNotification:
    return OrderNotification(
        order_id=order_id,
        notification_type="high_value_detected",
        priority_level=3,
        recipient_type="admin",
        message=f"{age_days}d old",
        is_read=is_read,
        created_at=NOW - timedelta(days=age_days),
    )


def _alert(order_id: str, *, age_days: int, acknowledged: bool) -> PriorityAlert:
    return PriorityAlert(
        order_id=order_id,
        alert_type="high_value_order",
        alert_message=f"{age_days}d old",
        priority_score=60,
        is_acknowledged=acknowledged,
        acknowledged_by="ops" if acknowledged else None,
        acknowledged_at=NOW - timedelta(days=age_days) if acknowledged else None,
        created_at=NOW - timedelta(days=age_days),
    )


def test_run_once_purges_only_old_read_or_acknowledged_rows(runtime, create_order) -> None:
    order = create_order()
    runtime.notifications.insert(
        [
            _notification(order.id, age_days=45, is_read=True),
            _notification(order.id, age_days=45, is_read=False),
            _notification(order.id, age_days=3, is_read=True),
        ]
    )
    runtime.alerts.insert(
        [
            _alert(order.id, age_days=60, acknowledged=True),
            _alert(order.id, age_days=60, acknowledged=False),
            _alert(order.id, age_days=1, acknowledged=True),
        ]
    )

    result = runtime.cleanup.run_once(now=NOW)

    assert (result.notifications_deleted, result.alerts_deleted) == (1, 1)
    assert result.cutoff == NOW - timedelta(days=30)
    remaining_notifications = runtime.notifications.list_for_order(order.id)
    remaining_alerts = runtime.alerts.list_for_order(order.id)
    assert sorted((n.message, n.is_read) for n in remaining_notifications) == [("3d old", True), ("45d old", False)]
    assert sorted((a.alert_message, a.is_acknowledged) for a in remaining_alerts) == [
        ("1d old", True),
        ("60d old", False),
    ]
    assert runtime.metrics.value("cleanup_deleted_total") == 2
    assert runtime.metrics.value("cleanup_runs_total") == 1


def test_slow_pass_is_time_boxed_and_loop_keeps_running(runtime, caplog, monkeypatch) -> None:
    caplog.set_level(logging.INFO, logger="order_priority.cleanup")
    job = RetentionCleanupJob(
        notifications=runtime.notifications,
        alerts=runtime.alerts,
        metrics=runtime.metrics,
        interval_seconds=1,
        pass_timeout_seconds=0.05,
    )
    monkeypatch.setattr(job, "run_once", lambda now=None: time.sleep(0.2))

    async def _scenario() -> None:
        task = asyncio.create_task(job.run())
        await asyncio.sleep(0.3)
        assert not task.done()
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    asyncio.run(_scenario())

    assert any("retention_cleanup_timed_out" in record.getMessage() for record in caplog.records)


def test_timed_out_pass_blocks_the_next_tick_until_it_finishes(runtime, caplog, monkeypatch) -> None:
    caplog.set_level(logging.INFO, logger="order_priority.cleanup")
    job = RetentionCleanupJob(
        notifications=runtime.notifications,
        alerts=runtime.alerts,
        metrics=runtime.metrics,
        interval_seconds=1,
        pass_timeout_seconds=0.05,
    )
    release = threading.Event()
    passes: list[int] = []

    def _slow_pass(now=None) -> None:
        passes.append(1)
        release.wait(timeout=5)

    monkeypatch.setattr(job, "run_once", _slow_pass)

    async def _scenario() -> None:
        task = asyncio.create_task(job.run())
        try:
            await asyncio.sleep(1.3)
        finally:
            release.set()
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

    asyncio.run(_scenario())

    messages = [record.getMessage() for record in caplog.records]
    assert len(passes) == 1
    assert any("retention_cleanup_timed_out" in message for message in messages)
    assert any("retention_cleanup_skipped" in message for message in messages)


def test_failed_pass_is_logged_and_loop_keeps_running(runtime, caplog, monkeypatch) -> None:
    caplog.set_level(logging.INFO, logger="order_priority.cleanup")
    job = RetentionCleanupJob(
        notifications=runtime.notifications,
        alerts=runtime.alerts,
        metrics=runtime.metrics,
        interval_seconds=1,
        pass_timeout_seconds=1,
    )

    def _broken_pass(now=None) -> None:
        raise RuntimeError("database is locked")

    monkeypatch.setattr(job, "run_once", _broken_pass)

    async def _scenario() -> None:
        task = asyncio.create_task(job.run())
        await asyncio.sleep(0.2)
        assert not task.done()
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    asyncio.run(_scenario())

    assert any(
        "retention_cleanup_failed" in record.getMessage() and "database is locked" in record.getMessage()
        for record in caplog.records
    )
