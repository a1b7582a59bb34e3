"""Consumes order change records and fans out notifications, alerts and broadcasts."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
import logging

from .broadcast import Broadcaster
from .events import build_order_realtime_event
from .feed import EventSource, OrderChangeEvent
from .generator import NotificationGenerator
from .observability import PriorityMetrics, log_event
from .repositories import AlertStore, NotificationStore

logger = logging.getLogger("order_priority.listener")


class ListenerState(str, Enum):
    IDLE = "idle"
    OBSERVING = "observing"
    DISPATCHING = "dispatching"


@dataclass(frozen=True)
class HandledChange:
    order_id: str
    notifications_created: int
    alerts_created: int
    broadcast: bool


class ChangeListener:
    """Processes one change record at a time from an event source.

    Failures while handling a record are logged and counted; the listener
    always returns to idle and moves on to the next record.
    """

    def __init__(
        self,
        *,
        source: EventSource,
        generator: NotificationGenerator,
        notifications: NotificationStore,
        alerts: AlertStore,
        broadcaster: Broadcaster,
        metrics: PriorityMetrics,
        channel: str = "admin-notifications",
        produced_by: str = "apps/order-priority-service",
        poll_seconds: float = 1.0,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._source = source
        self._generator = generator
        self._notifications = notifications
        self._alerts = alerts
        self._broadcaster = broadcaster
        self._metrics = metrics
        self._channel = channel
        self._produced_by = produced_by
        self._poll_seconds = poll_seconds
        self._clock = clock or (lambda: datetime.now(tz=timezone.utc))
        self.state = ListenerState.IDLE

    def handle(self, event: OrderChangeEvent) -> HandledChange | None:
        self.state = ListenerState.DISPATCHING
        order = event.current
        try:
            now = self._clock()
            artifacts = self._generator.for_event(event, now)
            self._notifications.insert(artifacts.notifications)
            self._alerts.insert(artifacts.alerts)
        except Exception as exc:
            self._metrics.increment("change_event_failures_total")
            log_event(
                logger,
                "order_change_handling_failed",
                change=event.event,
                order_id=order.id,
                error=f"{type(exc).__name__}: {exc}",
            )
            self.state = ListenerState.IDLE
            return None

        self._metrics.increment("change_events_total")
        self._metrics.increment("notifications_created_total", len(artifacts.notifications))
        self._metrics.increment("alerts_created_total", len(artifacts.alerts))
        log_event(
            logger,
            "order_change_handled",
            change=event.event,
            order_id=order.id,
            order_number=order.order_number,
            notifications_created=len(artifacts.notifications),
            alerts_created=len(artifacts.alerts),
        )

        envelope = build_order_realtime_event(
            change=event.event,
            order=order,
            occurred_at=now,
            produced_by=self._produced_by,
            notifications_created=len(artifacts.notifications),
            alerts_created=len(artifacts.alerts),
        )
        broadcast = self._dispatch(envelope)
        self.state = ListenerState.IDLE
        return HandledChange(
            order_id=order.id,
            notifications_created=len(artifacts.notifications),
            alerts_created=len(artifacts.alerts),
            broadcast=broadcast,
        )

    def drain(self) -> int:
        """Handle every record currently queued on the source."""

        handled = 0
        while True:
            event = self._source.next_event(None)
            if event is None:
                return handled
            self.handle(event)
            handled += 1

    async def run(self) -> None:
        log_event(logger, "order_change_listener_started", channel=self._channel)
        try:
            while True:
                self.state = ListenerState.OBSERVING
                event = await asyncio.to_thread(self._source.next_event, self._poll_seconds)
                if event is None:
                    continue
                await asyncio.to_thread(self.handle, event)
        finally:
            self.state = ListenerState.IDLE
            log_event(logger, "order_change_listener_stopped", channel=self._channel)

    def _dispatch(self, envelope: dict) -> bool:
        try:
            self._broadcaster.publish(self._channel, envelope)
        except Exception as exc:
            self._metrics.increment("broadcast_failures_total")
            log_event(
                logger,
                "realtime_dispatch_failed",
                channel=self._channel,
                order_id=envelope["order"]["id"],
                error=f"{type(exc).__name__}: {exc}",
            )
            return False
        self._metrics.increment("broadcasts_total")
        return True
