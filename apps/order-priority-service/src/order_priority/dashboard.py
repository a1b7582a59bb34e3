"""Pull-based dashboard reads over orders, notifications and alerts."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
import math

from .classifier import level_to_label
from .errors import ValidationError
from .models import Customer, Order
from .repositories import (
    SORTABLE_COLUMNS,
    AlertStore,
    NotificationStore,
    OrderFilter,
    OrderRepository,
    OrderSort,
    OrderSummaryCounts,
)

RECIPIENT_TYPES = ("admin", "fulfillment", "customer_service")
ALERT_TYPES = ("urgent_priority", "high_value_order", "vip_customer_order", "express_shipping")


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


@dataclass(frozen=True)
class DashboardItem:
    order: Order
    customer: Customer | None
    priority_label: str
    hours_since_placed: float


@dataclass(frozen=True)
class DashboardPage:
    items: list[DashboardItem]
    total: int
    offset: int
    limit: int

    @property
    def pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0

    @property
    def current_page(self) -> int:
        return self.offset // self.limit + 1 if self.limit else 1


@dataclass(frozen=True)
class DashboardSummary:
    window_days: int
    counts: OrderSummaryCounts


class DashboardQueryService:
    def __init__(
        self,
        *,
        orders: OrderRepository,
        notifications: NotificationStore,
        alerts: AlertStore,
        default_limit: int = 20,
        max_limit: int = 200,
        summary_window_days: int = 30,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._orders = orders
        self._notifications = notifications
        self._alerts = alerts
        self._default_limit = default_limit
        self._max_limit = max_limit
        self._summary_window_days = summary_window_days
        self._clock = clock or (lambda: datetime.now(tz=timezone.utc))

    def query(
        self,
        order_filter: OrderFilter | None = None,
        sort: OrderSort | None = None,
        *,
        offset: int = 0,
        limit: int | None = None,
    ) -> DashboardPage:
        """Return one page of orders plus the total match count.

        Each item carries its priority label and hours elapsed since placement.
        """

        order_filter = order_filter or OrderFilter()
        sort = sort or OrderSort()
        if sort.sort_by not in SORTABLE_COLUMNS:
            raise ValidationError(f"Unsupported sort field: {sort.sort_by}")
        if sort.sort_order not in ("asc", "desc"):
            raise ValidationError(f"Unsupported sort order: {sort.sort_order}")
        if offset < 0:
            raise ValidationError("offset must be >= 0")
        page_size = self._default_limit if limit is None else limit
        if page_size < 1:
            raise ValidationError("limit must be >= 1")
        page_size = min(page_size, self._max_limit)

        rows, total = self._orders.query_orders(order_filter, sort, offset=offset, limit=page_size)
        now = self._clock()
        items = [
            DashboardItem(
                order=order,
                customer=customer,
                priority_label=level_to_label(order.priority_level),
                hours_since_placed=round((now - _as_utc(order.placed_at)).total_seconds() / 3600, 2),
            )
            for order, customer in rows
        ]
        return DashboardPage(items=items, total=total, offset=offset, limit=page_size)

    def get(self, order_id: str) -> DashboardItem | None:
        order = self._orders.get(order_id, with_items=True)
        if order is None:
            return None
        customer = self._orders.get_customer(order.customer_id) if order.customer_id else None
        return DashboardItem(
            order=order,
            customer=customer,
            priority_label=level_to_label(order.priority_level),
            hours_since_placed=round((self._clock() - _as_utc(order.placed_at)).total_seconds() / 3600, 2),
        )

    def summary(self, window_days: int | None = None) -> DashboardSummary:
        days = self._summary_window_days if window_days is None else window_days
        if days < 1:
            raise ValidationError("window_days must be >= 1")
        since = self._clock() - timedelta(days=days)
        return DashboardSummary(window_days=days, counts=self._orders.summary(since))

    def notification_stats(self) -> dict:
        unread = self._notifications.unread_counts()
        active = self._alerts.active_counts()
        unread_notifications = {recipient: unread.get(recipient, 0) for recipient in RECIPIENT_TYPES}
        active_alerts = {alert_type: active.get(alert_type, 0) for alert_type in ALERT_TYPES}
        return {
            "unread_notifications": unread_notifications,
            "active_alerts": active_alerts,
            "total_unread": sum(unread_notifications.values()),
            "total_active_alerts": sum(active_alerts.values()),
        }
