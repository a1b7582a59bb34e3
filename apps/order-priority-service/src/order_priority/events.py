"""Realtime envelope builders for order priority broadcasts."""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import uuid4

from .classifier import level_to_label
from .feed import ChangeKind, OrderSnapshot

REALTIME_EVENT_TYPES: dict[ChangeKind, str] = {
    "insert": "order_created",
    "update": "order_updated",
}


def build_order_summary(order: OrderSnapshot) -> dict[str, Any]:
    return {
        "id": order.id,
        "order_number": order.order_number,
        "priority_level": order.priority_level,
        "priority_label": level_to_label(order.priority_level),
        "total_amount": order.total_amount,
        "customer_email": order.customer_email,
        "status": order.status,
        "is_high_value": order.is_high_value,
        "is_vip_customer": order.is_vip_customer,
        "is_express_shipping": order.is_express_shipping,
        "priority_tags": list(order.priority_tags),
    }


def build_order_realtime_event(
    *,
    change: ChangeKind,
    order: OrderSnapshot,
    occurred_at: datetime,
    produced_by: str,
    notifications_created: int = 0,
    alerts_created: int = 0,
) -> dict[str, Any]:
    """Build the envelope pushed to dashboard subscribers."""

    return {
        "event_id": str(uuid4()),
        "type": REALTIME_EVENT_TYPES[change],
        "order": build_order_summary(order),
        "timestamp": occurred_at.isoformat(),
        "produced_by": produced_by,
        "notifications_created": notifications_created,
        "alerts_created": alerts_created,
    }
