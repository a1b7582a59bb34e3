"""Order lifecycle operations: create, reprioritize, recalculate and transition status."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
import logging
import random
import string
from threading import Event

from .classifier import generate_tags, is_express_method, level_to_fulfillment_priority, score_to_level
from .config import Settings
from .errors import NotFoundError, PersistenceError, PriorityEngineError, ValidationError
from .models import Order, OrderItem, OrderStatusHistory
from .observability import PriorityMetrics, log_event
from .repositories import OrderNumberConflict, OrderRepository
from .rules import ScoringRule, build_rules
from .schemas import CreateOrderRequest
from .scoring import OrderAttributes, ScoringEngine

logger = logging.getLogger("order_priority.lifecycle")

ORDER_STATUSES = ("pending", "confirmed", "processing", "shipped", "delivered", "cancelled")
_SUFFIX_ALPHABET = string.digits + string.ascii_uppercase


@dataclass(frozen=True)
class PriorityAssessment:
    score: int
    level: int
    fulfillment_priority: str
    tags: list[str]


@dataclass(frozen=True)
class CreateOrderResult:
    success: bool
    order: Order | None = None
    error: PriorityEngineError | None = None


@dataclass(frozen=True)
class OperationResult:
    """Outcome of a single-order mutation."""

    success: bool
    message: str
    error: PriorityEngineError | None = None
    order: Order | None = None


@dataclass
class RecalculationResult:
    updated: int = 0
    errors: int = 0
    skipped: int = 0
    cancelled: bool = False
    failures: list[str] = field(default_factory=list)


class OrderLifecycleManager:
    """Owns every write that changes an order's priority or status.

    Scoring rules are read from the repository on each create and once per
    recalculation sweep. Single-order operations report failures through their
    result object instead of raising.
    """

    def __init__(
        self,
        *,
        settings: Settings,
        repository: OrderRepository,
        metrics: PriorityMetrics,
        scoring_engine: ScoringEngine | None = None,
        clock: Callable[[], datetime] | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self._settings = settings
        self._repository = repository
        self._metrics = metrics
        self._scoring = scoring_engine or ScoringEngine(base_score=settings.base_score, metrics=metrics)
        self._clock = clock or (lambda: datetime.now(tz=timezone.utc))
        self._rng = rng or random.Random()

    def generate_order_number(self, now: datetime | None = None) -> str:
        moment = now or self._clock()
        millis = str(int(moment.timestamp() * 1000))[-8:]
        suffix = "".join(self._rng.choice(_SUFFIX_ALPHABET) for _ in range(4))
        return f"{self._settings.order_number_prefix}-{millis}-{suffix}"

    def load_rules(self) -> list[ScoringRule]:
        return build_rules(self._repository.list_active_rules())

    def assess(self, attributes: OrderAttributes, rules: list[ScoringRule]) -> PriorityAssessment:
        score = self._scoring.compute_score(attributes, rules)
        level = score_to_level(score)
        return PriorityAssessment(
            score=score,
            level=level,
            fulfillment_priority=level_to_fulfillment_priority(level),
            tags=generate_tags(
                attributes,
                high_value_threshold=self._settings.high_value_threshold,
                large_order_threshold=self._settings.large_order_threshold,
                premium_order_threshold=self._settings.premium_order_threshold,
                express_methods=self._settings.express_shipping_methods,
            ),
        )

    def create_order(self, request: CreateOrderRequest) -> CreateOrderResult:
        try:
            customer = self._repository.get_customer(request.customer_id) if request.customer_id else None
            rules = self.load_rules()
        except PersistenceError as exc:
            return self._create_failed(request, exc)

        prior_orders = customer.total_orders if customer is not None else 0
        attributes = OrderAttributes(
            total_amount=request.total_amount,
            shipping_method=request.shipping_method,
            is_express_shipping=is_express_method(request.shipping_method, self._settings.express_shipping_methods),
            is_high_value=request.total_amount >= self._settings.high_value_threshold,
            is_vip_customer=bool(customer.is_vip) if customer is not None else False,
            is_repeat_customer=prior_orders > 1,
        )
        assessment = self.assess(attributes, rules)
        now = self._clock()

        last_error: PriorityEngineError | None = None
        for attempt in range(1, max(self._settings.order_number_max_attempts, 1) + 1):
            order = self._build_order(request, attributes, assessment, now, customer_order_count=prior_orders + 1)
            items = [self._build_item(item, now) for item in request.items]
            try:
                created = self._repository.create(order, items)
            except OrderNumberConflict as exc:
                last_error = exc
                log_event(
                    logger,
                    "order_number_conflict",
                    order_number=order.order_number,
                    attempt=attempt,
                )
                continue
            except PersistenceError as exc:
                return self._create_failed(request, exc)

            self._metrics.increment("orders_created_total")
            log_event(
                logger,
                "order_created",
                order_id=created.id,
                order_number=created.order_number,
                priority_score=created.priority_score,
                priority_level=created.priority_level,
                priority_tags=created.priority_tags,
            )
            return CreateOrderResult(success=True, order=created)

        return self._create_failed(
            request,
            PersistenceError(f"could not allocate a unique order number: {last_error}"),
        )

    def update_priority(self, order_id: str, new_level: int, is_manual: bool = True) -> OperationResult:
        if new_level not in range(1, 6):
            error = ValidationError(f"priority_level must be between 1 and 5, got {new_level}")
            return OperationResult(success=False, message=str(error), error=error)

        fields = {
            "priority_level": new_level,
            "fulfillment_priority": level_to_fulfillment_priority(new_level),
            "manual_priority_override": is_manual,
        }
        try:
            order = self._repository.update_fields(order_id, fields)
        except (NotFoundError, PersistenceError) as exc:
            log_event(logger, "order_priority_update_failed", order_id=order_id, error=str(exc))
            return OperationResult(success=False, message=str(exc), error=exc)

        self._metrics.increment("priority_updates_total")
        log_event(
            logger,
            "order_priority_updated",
            order_id=order_id,
            priority_level=new_level,
            manual_priority_override=is_manual,
        )
        return OperationResult(success=True, message="Order priority updated successfully", order=order)

    def recalculate_all(self, cancel: Event | None = None) -> RecalculationResult:
        """Re-score every open order that has no manual override.

        Each write is conditional on the override flag still being false, so an
        order overridden after the sweep read it is skipped rather than
        overwritten.
        """

        result = RecalculationResult()
        try:
            rules = self.load_rules()
            orders = self._repository.list_orders_by_status(self._settings.recalculable_statuses, False)
        except PersistenceError as exc:
            result.errors += 1
            result.failures.append(str(exc))
            self._metrics.increment("recalculation_errors_total")
            log_event(logger, "priority_recalculation_failed", error=str(exc))
            return result

        for order in orders:
            if cancel is not None and cancel.is_set():
                result.cancelled = True
                break

            assessment = self.assess(OrderAttributes.from_order(order), rules)
            fields = {
                "priority_score": assessment.score,
                "priority_level": assessment.level,
                "fulfillment_priority": assessment.fulfillment_priority,
                "priority_tags": assessment.tags,
                "auto_priority_assigned": True,
            }
            try:
                written = self._repository.update_fields(order.id, fields, require_override=False)
            except PriorityEngineError as exc:
                result.errors += 1
                result.failures.append(f"{order.id}: {exc}")
                self._metrics.increment("recalculation_errors_total")
                continue

            if written is None:
                result.skipped += 1
            else:
                result.updated += 1
                self._metrics.increment("recalculated_orders_total")

        log_event(
            logger,
            "priority_recalculation_completed",
            updated=result.updated,
            errors=result.errors,
            skipped=result.skipped,
            cancelled=result.cancelled,
        )
        return result

    def update_status(
        self,
        order_id: str,
        new_status: str,
        changed_by: str = "system",
        reason: str | None = None,
    ) -> OperationResult:
        if new_status not in ORDER_STATUSES:
            error = ValidationError(f"unknown order status: {new_status}")
            return OperationResult(success=False, message=str(error), error=error)

        try:
            change = self._repository.record_status_change(
                order_id,
                new_status=new_status,
                changed_by=changed_by,
                reason=reason,
                changed_at=self._clock(),
            )
        except (NotFoundError, PersistenceError) as exc:
            log_event(logger, "order_status_update_failed", order_id=order_id, error=str(exc))
            return OperationResult(success=False, message=str(exc), error=exc)

        self._metrics.increment("status_updates_total")
        log_event(
            logger,
            "order_status_updated",
            order_id=order_id,
            previous_status=change.history.previous_status,
            new_status=new_status,
            changed_by=changed_by,
        )
        return OperationResult(success=True, message="Order status updated successfully", order=change.order)

    def get_order(self, order_id: str) -> Order:
        order = self._repository.get(order_id, with_items=True)
        if order is None:
            raise NotFoundError(f"Order {order_id} not found")
        return order

    def list_status_history(self, order_id: str) -> list[OrderStatusHistory]:
        if self._repository.get(order_id) is None:
            raise NotFoundError(f"Order {order_id} not found")
        return self._repository.list_status_history(order_id)

    def _build_order(
        self,
        request: CreateOrderRequest,
        attributes: OrderAttributes,
        assessment: PriorityAssessment,
        now: datetime,
        *,
        customer_order_count: int,
    ) -> Order:
        return Order(
            order_number=self.generate_order_number(now),
            customer_id=request.customer_id,
            customer_email=request.customer_email,
            status="pending",
            total_amount=request.total_amount,
            subtotal=request.subtotal,
            tax_amount=request.tax_amount,
            shipping_amount=request.shipping_amount,
            discount_amount=request.discount_amount,
            priority_level=assessment.level,
            priority_score=assessment.score,
            auto_priority_assigned=True,
            manual_priority_override=False,
            fulfillment_priority=assessment.fulfillment_priority,
            shipping_method=request.shipping_method,
            is_express_shipping=attributes.is_express_shipping,
            is_repeat_customer=attributes.is_repeat_customer,
            customer_order_count=customer_order_count,
            is_high_value=attributes.is_high_value,
            is_vip_customer=attributes.is_vip_customer,
            priority_tags=list(assessment.tags),
            billing_address=request.billing_address,
            shipping_address=request.shipping_address,
            placed_at=now,
            created_at=now,
            updated_at=now,
        )

    @staticmethod
    def _build_item(item, now: datetime) -> OrderItem:
        return OrderItem(
            product_id=item.product_id,
            product_name=item.product_name,
            product_sku=item.product_sku,
            product_category=item.product_category,
            quantity=item.quantity,
            unit_price=item.unit_price,
            total_price=item.total_price,
            is_digital=item.is_digital,
            requires_special_handling=item.requires_special_handling,
            created_at=now,
        )

    def _create_failed(self, request: CreateOrderRequest, exc: PriorityEngineError) -> CreateOrderResult:
        self._metrics.increment("order_create_failures_total")
        log_event(
            logger,
            "order_create_failed",
            customer_email=request.customer_email,
            error=str(exc),
        )
        return CreateOrderResult(success=False, error=exc)
