"""Order change feed delivering insert/update records after commit."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from queue import Empty, Queue
from typing import Literal, Protocol

ChangeKind = Literal["insert", "update"]


@dataclass(frozen=True)
class OrderSnapshot:
    """Committed order state carried by a change record."""

    id: str
    order_number: str
    customer_email: str
    status: str
    total_amount: float
    priority_level: int
    priority_score: int
    fulfillment_priority: str
    manual_priority_override: bool
    shipping_method: str
    is_express_shipping: bool
    is_high_value: bool
    is_vip_customer: bool
    is_repeat_customer: bool
    priority_tags: tuple[str, ...] = ()

    @classmethod
    def from_order(cls, order) -> "OrderSnapshot":
        return cls(
            id=order.id,
            order_number=order.order_number,
            customer_email=order.customer_email,
            status=order.status,
            total_amount=float(order.total_amount),
            priority_level=int(order.priority_level),
            priority_score=int(order.priority_score),
            fulfillment_priority=order.fulfillment_priority,
            manual_priority_override=bool(order.manual_priority_override),
            shipping_method=order.shipping_method,
            is_express_shipping=bool(order.is_express_shipping),
            is_high_value=bool(order.is_high_value),
            is_vip_customer=bool(order.is_vip_customer),
            is_repeat_customer=bool(order.is_repeat_customer),
            priority_tags=tuple(order.priority_tags or ()),
        )


@dataclass(frozen=True)
class OrderChangeEvent:
    """One committed mutation of an order."""

    event: ChangeKind
    current: OrderSnapshot
    previous: OrderSnapshot | None = None
    committed_at: datetime = field(default_factory=lambda: datetime.now(tz=timezone.utc))


class EventSource(Protocol):
    """Subscription primitive consumed by the change listener."""

    def next_event(self, timeout: float | None = None) -> OrderChangeEvent | None: ...


class InMemoryOrderChangeFeed:
    """Thread-safe FIFO of committed order changes."""

    def __init__(self) -> None:
        self._queue: Queue[OrderChangeEvent] = Queue()

    def reset(self) -> None:
        self._queue = Queue()

    def publish(self, event: OrderChangeEvent) -> None:
        self._queue.put(event)

    def next_event(self, timeout: float | None = None) -> OrderChangeEvent | None:
        try:
            if timeout is None:
                return self._queue.get_nowait()
            return self._queue.get(timeout=timeout)
        except Empty:
            return None

    def pending(self) -> int:
        return self._queue.qsize()
