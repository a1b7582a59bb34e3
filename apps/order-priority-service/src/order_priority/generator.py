"""Derives audience notifications and acknowledgable alerts from order changes."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from .classifier import level_to_label
from .feed import OrderChangeEvent, OrderSnapshot
from .models import OrderNotification, PriorityAlert

HIGH_VALUE_ALERT_THRESHOLD = 1000.0


def format_currency(amount: float) -> str:
    return f"${amount:,.2f}"


@dataclass
class GeneratedArtifacts:
    notifications: list[OrderNotification] = field(default_factory=list)
    alerts: list[PriorityAlert] = field(default_factory=list)


class NotificationGenerator:
    """Applies notification and alert rules to one committed order change."""

    def __init__(self, *, high_value_alert_threshold: float = HIGH_VALUE_ALERT_THRESHOLD) -> None:
        self._high_value_alert_threshold = high_value_alert_threshold

    def for_event(self, event: OrderChangeEvent, now: datetime) -> GeneratedArtifacts:
        order = event.current
        artifacts = GeneratedArtifacts(notifications=self.characteristic_notifications(order, now))

        if event.event == "insert" or event.previous is None:
            artifacts.alerts.extend(self.alerts(order, now))
            return artifacts

        previous = event.previous
        if order.priority_level < previous.priority_level:
            artifacts.notifications.append(
                self._notification(
                    order,
                    now,
                    notification_type="priority_assigned",
                    recipient_type="fulfillment",
                    message=(
                        f"Order {order.order_number} priority increased to "
                        f"{level_to_label(order.priority_level)}"
                    ),
                )
            )
            if order.priority_level == 1:
                artifacts.alerts.extend(self.alerts(order, now))

        if order.status != previous.status:
            artifacts.notifications.append(
                self._notification(
                    order,
                    now,
                    notification_type="status_changed",
                    recipient_type="admin",
                    message=f"Order {order.order_number} status changed from {previous.status} to {order.status}",
                )
            )
        return artifacts

    def characteristic_notifications(self, order: OrderSnapshot, now: datetime) -> list[OrderNotification]:
        notifications: list[OrderNotification] = []

        if order.priority_level <= 2:
            urgency = "URGENT" if order.priority_level == 1 else "HIGH"
            notifications.append(
                self._notification(
                    order,
                    now,
                    notification_type="priority_assigned",
                    recipient_type="fulfillment",
                    message=f"{urgency} priority order {order.order_number} requires immediate attention",
                )
            )
        if order.is_high_value:
            notifications.append(
                self._notification(
                    order,
                    now,
                    notification_type="high_value_detected",
                    recipient_type="admin",
                    message=(
                        f"High-value order {order.order_number} "
                        f"({format_currency(order.total_amount)}) detected"
                    ),
                )
            )
        if order.is_vip_customer:
            notifications.append(
                self._notification(
                    order,
                    now,
                    notification_type="vip_customer",
                    recipient_type="customer_service",
                    message=f"VIP customer order {order.order_number} requires priority handling",
                )
            )
        if order.is_express_shipping:
            notifications.append(
                self._notification(
                    order,
                    now,
                    notification_type="express_shipping",
                    recipient_type="fulfillment",
                    message=f"Express shipping order {order.order_number} needs expedited fulfillment",
                )
            )
        return notifications

    def alerts(self, order: OrderSnapshot, now: datetime) -> list[PriorityAlert]:
        alerts: list[PriorityAlert] = []

        if order.priority_level == 1:
            alerts.append(
                self._alert(
                    order,
                    now,
                    alert_type="urgent_priority",
                    message=f"URGENT: Order {order.order_number} requires immediate fulfillment attention",
                )
            )
        if order.total_amount >= self._high_value_alert_threshold:
            alerts.append(
                self._alert(
                    order,
                    now,
                    alert_type="high_value_order",
                    message=(
                        f"High-value order {order.order_number} "
                        f"({format_currency(order.total_amount)}) detected"
                    ),
                )
            )
        if order.is_vip_customer:
            alerts.append(
                self._alert(
                    order,
                    now,
                    alert_type="vip_customer_order",
                    message=f"VIP customer order {order.order_number} requires special attention",
                )
            )
        if order.is_express_shipping and order.priority_level <= 2:
            alerts.append(
                self._alert(
                    order,
                    now,
                    alert_type="express_shipping",
                    message=f"Express shipping order {order.order_number} needs expedited processing",
                )
            )
        return alerts

    @staticmethod
    def _notification(
        order: OrderSnapshot,
        now: datetime,
        *,
        notification_type: str,
        recipient_type: str,
        message: str,
    ) -> OrderNotification:
        return OrderNotification(
            order_id=order.id,
            notification_type=notification_type,
            priority_level=order.priority_level,
            recipient_type=recipient_type,
            message=message,
            is_read=False,
            created_at=now,
        )

    @staticmethod
    def _alert(order: OrderSnapshot, now: datetime, *, alert_type: str, message: str) -> PriorityAlert:
        return PriorityAlert(
            order_id=order.id,
            alert_type=alert_type,
            alert_message=message,
            priority_score=order.priority_score,
            is_acknowledged=False,
            created_at=now,
        )
