"""Wiring of stores, engines and background jobs for one service process."""

from __future__ import annotations

from dataclasses import dataclass

from .broadcast import InMemoryBroadcaster
from .bulk import BulkOperationCoordinator
from .cleanup import RetentionCleanupJob
from .config import Settings, get_settings
from .dashboard import DashboardQueryService
from .feed import InMemoryOrderChangeFeed
from .generator import NotificationGenerator
from .lifecycle import OrderLifecycleManager
from .listener import ChangeListener
from .observability import PriorityMetrics, get_metrics
from .repositories import AlertStore, NotificationStore, OrderRepository, SessionFactory


@dataclass
class ServiceRuntime:
    settings: Settings
    metrics: PriorityMetrics
    feed: InMemoryOrderChangeFeed
    broadcaster: InMemoryBroadcaster
    orders: OrderRepository
    notifications: NotificationStore
    alerts: AlertStore
    lifecycle: OrderLifecycleManager
    listener: ChangeListener
    bulk: BulkOperationCoordinator
    dashboard: DashboardQueryService
    cleanup: RetentionCleanupJob


def build_runtime(
    settings: Settings | None = None,
    session_factory: SessionFactory | None = None,
    metrics: PriorityMetrics | None = None,
) -> ServiceRuntime:
    settings = settings or get_settings()
    metrics = metrics or get_metrics()
    if session_factory is None:
        from .db import SessionLocal

        session_factory = SessionLocal

    feed = InMemoryOrderChangeFeed()
    broadcaster = InMemoryBroadcaster(queue_size=settings.subscriber_queue_size)
    orders = OrderRepository(session_factory, feed=feed)
    notifications = NotificationStore(session_factory)
    alerts = AlertStore(session_factory)
    lifecycle = OrderLifecycleManager(settings=settings, repository=orders, metrics=metrics)

    return ServiceRuntime(
        settings=settings,
        metrics=metrics,
        feed=feed,
        broadcaster=broadcaster,
        orders=orders,
        notifications=notifications,
        alerts=alerts,
        lifecycle=lifecycle,
        listener=ChangeListener(
            source=feed,
            generator=NotificationGenerator(high_value_alert_threshold=settings.large_order_threshold),
            notifications=notifications,
            alerts=alerts,
            broadcaster=broadcaster,
            metrics=metrics,
            channel=settings.broadcast_channel,
            produced_by=settings.event_produced_by,
            poll_seconds=settings.listener_poll_seconds,
        ),
        bulk=BulkOperationCoordinator(lifecycle=lifecycle, metrics=metrics, error_limit=settings.bulk_error_limit),
        dashboard=DashboardQueryService(
            orders=orders,
            notifications=notifications,
            alerts=alerts,
            default_limit=settings.dashboard_default_limit,
            max_limit=settings.dashboard_max_limit,
            summary_window_days=settings.summary_window_days,
        ),
        cleanup=RetentionCleanupJob(
            notifications=notifications,
            alerts=alerts,
            metrics=metrics,
            retention_days=settings.notification_retention_days,
            interval_seconds=settings.cleanup_interval_seconds,
            pass_timeout_seconds=settings.cleanup_pass_timeout_seconds,
        ),
    )


_runtime: ServiceRuntime | None = None


def get_runtime() -> ServiceRuntime:
    """Return the process-wide runtime, building it on first use."""

    global _runtime
    if _runtime is None:
        _runtime = build_runtime()
    return _runtime
