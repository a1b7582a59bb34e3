"""Persistence operations for orders, rules, notifications and alerts."""

from __future__ import annotations

from collections.abc import Callable, Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import case, delete, func, or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from .errors import NotFoundError, PersistenceError
from .feed import InMemoryOrderChangeFeed, OrderChangeEvent, OrderSnapshot
from .models import (
    Customer,
    Order,
    OrderItem,
    OrderNotification,
    OrderStatusHistory,
    PriorityAlert,
    PriorityRule,
)

SessionFactory = Callable[[], Session]

STATUS_TIMESTAMP_FIELDS = {
    "confirmed": "confirmed_at",
    "shipped": "shipped_at",
    "delivered": "delivered_at",
}

SORTABLE_COLUMNS = {
    "priority_level": Order.priority_level,
    "priority_score": Order.priority_score,
    "placed_at": Order.placed_at,
    "created_at": Order.created_at,
    "total_amount": Order.total_amount,
    "order_number": Order.order_number,
    "status": Order.status,
    "customer_email": Order.customer_email,
}


class OrderNumberConflict(PersistenceError):
    """Raised when a generated order number is already taken."""


@dataclass(frozen=True)
class OrderFilter:
    """Dashboard filter set; empty collections mean no constraint."""

    statuses: Sequence[str] = ()
    priority_levels: Sequence[int] = ()
    shipping_methods: Sequence[str] = ()
    is_high_value: bool | None = None
    is_vip_customer: bool | None = None
    search: str | None = None


@dataclass(frozen=True)
class OrderSort:
    sort_by: str = "priority_level"
    sort_order: str = "asc"


@dataclass(frozen=True)
class StatusChange:
    """Committed status transition with its history entry."""

    order: Order
    history: OrderStatusHistory


@dataclass
class OrderSummaryCounts:
    total_orders: int = 0
    pending_orders: int = 0
    processing_orders: int = 0
    shipped_orders: int = 0
    urgent_orders: int = 0
    high_priority_orders: int = 0
    high_value_orders: int = 0
    express_orders: int = 0
    vip_orders: int = 0
    total_order_value: float = 0.0
    average_order_value: float = 0.0


class _SqlRepository:
    def __init__(self, session_factory: SessionFactory) -> None:
        self._session_factory = session_factory

    @contextmanager
    def _session(self, operation: str) -> Iterator[Session]:
        session = self._session_factory()
        try:
            yield session
        except SQLAlchemyError as exc:
            session.rollback()
            raise PersistenceError(f"{operation} failed: {exc.__class__.__name__}") from exc
        finally:
            session.close()


class OrderRepository(_SqlRepository):
    """Repository for orders, their items, history and scoring rules.

    Every committed insert or update is published on the change feed with
    before/after snapshots.
    """

    def __init__(self, session_factory: SessionFactory, feed: InMemoryOrderChangeFeed | None = None) -> None:
        super().__init__(session_factory)
        self._feed = feed

    def _publish(self, event: OrderChangeEvent) -> None:
        if self._feed is not None:
            self._feed.publish(event)

    def get(self, order_id: str, *, with_items: bool = False) -> Order | None:
        with self._session("get order") as session:
            options = [selectinload(Order.items)] if with_items else []
            return session.get(Order, order_id, options=options)

    def get_customer(self, customer_id: str) -> Customer | None:
        with self._session("get customer") as session:
            return session.get(Customer, customer_id)

    def create(self, order: Order, items: list[OrderItem]) -> Order:
        """Insert an order and its items in one transaction."""

        with self._session("create order") as session:
            taken = session.scalar(select(Order.id).where(Order.order_number == order.order_number))
            if taken is not None:
                raise OrderNumberConflict(f"order number {order.order_number} already exists")

            order.items = list(items)
            session.add(order)
            try:
                session.flush()
            except IntegrityError as exc:
                session.rollback()
                raise PersistenceError("Order violates constraints") from exc
            snapshot = OrderSnapshot.from_order(order)
            session.commit()

        self._publish(OrderChangeEvent(event="insert", current=snapshot))
        return order

    def update_fields(
        self,
        order_id: str,
        fields: dict[str, Any],
        *,
        require_override: bool | None = None,
    ) -> Order | None:
        """Apply field changes to one order.

        When `require_override` is given the write only happens if the stored
        override flag still equals it; otherwise nothing is written and None is
        returned.
        """

        with self._session("update order") as session:
            order = session.get(Order, order_id)
            if order is None:
                raise NotFoundError(f"Order {order_id} not found")
            if require_override is not None and order.manual_priority_override != require_override:
                return None

            previous = OrderSnapshot.from_order(order)
            for name, value in fields.items():
                setattr(order, name, value)
            if "updated_at" not in fields:
                order.updated_at = datetime.now(tz=timezone.utc)
            session.flush()
            current = OrderSnapshot.from_order(order)
            session.commit()

        self._publish(OrderChangeEvent(event="update", previous=previous, current=current))
        return order

    def record_status_change(
        self,
        order_id: str,
        *,
        new_status: str,
        changed_by: str,
        reason: str | None,
        changed_at: datetime,
    ) -> StatusChange:
        """Persist a status transition and its history row together."""

        with self._session("update order status") as session:
            order = session.get(Order, order_id)
            if order is None:
                raise NotFoundError(f"Order {order_id} not found")

            previous = OrderSnapshot.from_order(order)
            previous_status = order.status
            order.status = new_status
            order.updated_at = changed_at
            timestamp_field = STATUS_TIMESTAMP_FIELDS.get(new_status)
            if timestamp_field:
                setattr(order, timestamp_field, changed_at)

            history = OrderStatusHistory(
                order_id=order.id,
                previous_status=previous_status,
                new_status=new_status,
                changed_by=changed_by,
                change_reason=reason,
                priority_before=order.priority_level,
                priority_after=order.priority_level,
                created_at=changed_at,
            )
            session.add(history)
            session.flush()
            current = OrderSnapshot.from_order(order)
            session.commit()

        self._publish(OrderChangeEvent(event="update", previous=previous, current=current))
        return StatusChange(order=order, history=history)

    def list_status_history(self, order_id: str) -> list[OrderStatusHistory]:
        with self._session("list status history") as session:
            stmt = (
                select(OrderStatusHistory)
                .where(OrderStatusHistory.order_id == order_id)
                .order_by(OrderStatusHistory.created_at.asc())
            )
            return list(session.scalars(stmt))

    def list_active_rules(self) -> list[PriorityRule]:
        with self._session("list priority rules") as session:
            stmt = (
                select(PriorityRule)
                .where(PriorityRule.is_active.is_(True))
                .order_by(PriorityRule.rule_order.asc(), PriorityRule.rule_name.asc())
            )
            return list(session.scalars(stmt))

    def list_orders_by_status(self, statuses: Sequence[str], override_flag: bool) -> list[Order]:
        with self._session("list orders by status") as session:
            stmt = (
                select(Order)
                .where(Order.status.in_(list(statuses)))
                .where(Order.manual_priority_override.is_(override_flag))
                .order_by(Order.placed_at.asc())
            )
            return list(session.scalars(stmt))

    def query_orders(
        self,
        order_filter: OrderFilter,
        sort: OrderSort,
        *,
        offset: int,
        limit: int,
    ) -> tuple[list[tuple[Order, Customer | None]], int]:
        conditions = []
        if order_filter.statuses:
            conditions.append(Order.status.in_(list(order_filter.statuses)))
        if order_filter.priority_levels:
            conditions.append(Order.priority_level.in_(list(order_filter.priority_levels)))
        if order_filter.shipping_methods:
            conditions.append(Order.shipping_method.in_(list(order_filter.shipping_methods)))
        if order_filter.is_high_value is not None:
            conditions.append(Order.is_high_value.is_(order_filter.is_high_value))
        if order_filter.is_vip_customer is not None:
            conditions.append(Order.is_vip_customer.is_(order_filter.is_vip_customer))
        if order_filter.search and order_filter.search.strip():
            pattern = f"%{order_filter.search.strip()}%"
            conditions.append(or_(Order.order_number.ilike(pattern), Order.customer_email.ilike(pattern)))

        stmt = select(Order, Customer).outerjoin(Customer, Order.customer_id == Customer.id).where(*conditions)
        count_stmt = select(func.count(Order.id)).where(*conditions)

        ascending = sort.sort_order != "desc"
        if sort.sort_by == "priority_level":
            level = Order.priority_level.asc() if ascending else Order.priority_level.desc()
            ordering = [level, Order.priority_score.desc(), Order.placed_at.asc()]
        else:
            column = SORTABLE_COLUMNS[sort.sort_by]
            ordering = [column.asc() if ascending else column.desc()]
        ordering.append(Order.id.asc())

        with self._session("query orders") as session:
            total_items = int(session.scalar(count_stmt) or 0)
            rows = session.execute(stmt.order_by(*ordering).offset(offset).limit(limit)).all()
            return [(row[0], row[1]) for row in rows], total_items

    def summary(self, since: datetime) -> OrderSummaryCounts:
        def _count(condition):
            return func.coalesce(func.sum(case((condition, 1), else_=0)), 0)

        stmt = select(
            func.count(Order.id),
            _count(Order.status == "pending"),
            _count(Order.status == "processing"),
            _count(Order.status == "shipped"),
            _count(Order.priority_level == 1),
            _count(Order.priority_level == 2),
            _count(Order.is_high_value.is_(True)),
            _count(Order.is_express_shipping.is_(True)),
            _count(Order.is_vip_customer.is_(True)),
            func.coalesce(func.sum(Order.total_amount), 0.0),
            func.coalesce(func.avg(Order.total_amount), 0.0),
        ).where(Order.created_at >= since)

        with self._session("summarize orders") as session:
            row = session.execute(stmt).one()

        return OrderSummaryCounts(
            total_orders=int(row[0]),
            pending_orders=int(row[1]),
            processing_orders=int(row[2]),
            shipped_orders=int(row[3]),
            urgent_orders=int(row[4]),
            high_priority_orders=int(row[5]),
            high_value_orders=int(row[6]),
            express_orders=int(row[7]),
            vip_orders=int(row[8]),
            total_order_value=round(float(row[9]), 2),
            average_order_value=round(float(row[10]), 2),
        )


class NotificationStore(_SqlRepository):
    """Storage for per-audience order notifications."""

    def insert(self, notifications: list[OrderNotification]) -> list[OrderNotification]:
        if not notifications:
            return []
        with self._session("insert notifications") as session:
            session.add_all(notifications)
            session.commit()
        return notifications

    def list_unread(self, recipient_type: str, limit: int = 50) -> list[OrderNotification]:
        with self._session("list unread notifications") as session:
            stmt = (
                select(OrderNotification)
                .options(selectinload(OrderNotification.order))
                .where(OrderNotification.recipient_type == recipient_type)
                .where(OrderNotification.is_read.is_(False))
                .order_by(OrderNotification.created_at.desc())
                .limit(limit)
            )
            return list(session.scalars(stmt))

    def list_for_order(self, order_id: str) -> list[OrderNotification]:
        with self._session("list order notifications") as session:
            stmt = (
                select(OrderNotification)
                .where(OrderNotification.order_id == order_id)
                .order_by(OrderNotification.created_at.asc())
            )
            return list(session.scalars(stmt))

    def mark_read(self, notification_ids: Sequence[str]) -> int:
        if not notification_ids:
            return 0
        with self._session("mark notifications read") as session:
            result = session.execute(
                update(OrderNotification)
                .where(OrderNotification.id.in_(list(notification_ids)))
                .values(is_read=True)
            )
            session.commit()
            return int(result.rowcount or 0)

    def unread_counts(self) -> dict[str, int]:
        with self._session("count unread notifications") as session:
            stmt = (
                select(OrderNotification.recipient_type, func.count(OrderNotification.id))
                .where(OrderNotification.is_read.is_(False))
                .group_by(OrderNotification.recipient_type)
            )
            return {recipient: int(count) for recipient, count in session.execute(stmt).all()}

    def delete_older_than(self, cutoff: datetime) -> int:
        """Delete read notifications created before `cutoff`."""

        with self._session("delete old notifications") as session:
            result = session.execute(
                delete(OrderNotification)
                .where(OrderNotification.is_read.is_(True))
                .where(OrderNotification.created_at < cutoff)
            )
            session.commit()
            return int(result.rowcount or 0)


class AlertStore(_SqlRepository):
    """Storage for acknowledgment-requiring priority alerts."""

    def insert(self, alerts: list[PriorityAlert]) -> list[PriorityAlert]:
        if not alerts:
            return []
        with self._session("insert alerts") as session:
            session.add_all(alerts)
            session.commit()
        return alerts

    def list_unacknowledged(self, limit: int = 100) -> list[PriorityAlert]:
        with self._session("list active alerts") as session:
            stmt = (
                select(PriorityAlert)
                .options(selectinload(PriorityAlert.order))
                .where(PriorityAlert.is_acknowledged.is_(False))
                .order_by(PriorityAlert.created_at.desc())
                .limit(limit)
            )
            return list(session.scalars(stmt))

    def list_for_order(self, order_id: str) -> list[PriorityAlert]:
        with self._session("list order alerts") as session:
            stmt = (
                select(PriorityAlert)
                .where(PriorityAlert.order_id == order_id)
                .order_by(PriorityAlert.created_at.asc())
            )
            return list(session.scalars(stmt))

    def acknowledge(self, alert_ids: Sequence[str], acknowledged_by: str, acknowledged_at: datetime) -> int:
        if not alert_ids:
            return 0
        with self._session("acknowledge alerts") as session:
            result = session.execute(
                update(PriorityAlert)
                .where(PriorityAlert.id.in_(list(alert_ids)))
                .where(PriorityAlert.is_acknowledged.is_(False))
                .values(
                    is_acknowledged=True,
                    acknowledged_by=acknowledged_by,
                    acknowledged_at=acknowledged_at,
                )
            )
            session.commit()
            return int(result.rowcount or 0)

    def active_counts(self) -> dict[str, int]:
        with self._session("count active alerts") as session:
            stmt = (
                select(PriorityAlert.alert_type, func.count(PriorityAlert.id))
                .where(PriorityAlert.is_acknowledged.is_(False))
                .group_by(PriorityAlert.alert_type)
            )
            return {alert_type: int(count) for alert_type, count in session.execute(stmt).all()}

    def delete_older_than(self, cutoff: datetime) -> int:
        """Delete acknowledged alerts created before `cutoff`."""

        with self._session("delete old alerts") as session:
            result = session.execute(
                delete(PriorityAlert)
                .where(PriorityAlert.is_acknowledged.is_(True))
                .where(PriorityAlert.created_at < cutoff)
            )
            session.commit()
            return int(result.rowcount or 0)
