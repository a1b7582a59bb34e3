"""Administrative mass updates with partial-failure accounting."""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
from threading import Event
from typing import Any

from .errors import ValidationError
from .lifecycle import ORDER_STATUSES, OrderLifecycleManager, OperationResult
from .observability import PriorityMetrics, log_event

logger = logging.getLogger("order_priority.bulk")

BULK_ACTIONS = ("update_status", "update_priority", "recalculate_priorities")


@dataclass
class BulkResult:
    action: str
    total: int = 0
    successful: int = 0
    failed: int = 0
    errors: list[str] = field(default_factory=list)
    cancelled: bool = False

    @property
    def success(self) -> bool:
        return self.failed == 0

    @property
    def message(self) -> str:
        words = self.action.replace("_", " ", 1)
        return f"Bulk {words} completed. {self.successful} successful, {self.failed} failed."

    def as_payload(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "message": self.message,
            "cancelled": self.cancelled,
            "results": {
                "total": self.total,
                "successful": self.successful,
                "failed": self.failed,
                "errors": list(self.errors),
            },
        }


class BulkOperationCoordinator:
    """Drives lifecycle operations over many orders, one order at a time."""

    def __init__(
        self,
        *,
        lifecycle: OrderLifecycleManager,
        metrics: PriorityMetrics,
        error_limit: int = 10,
    ) -> None:
        self._lifecycle = lifecycle
        self._metrics = metrics
        self._error_limit = error_limit

    def bulk_apply(
        self,
        action: str,
        order_ids: list[str] | None,
        payload: dict[str, Any] | None = None,
        cancel: Event | None = None,
    ) -> BulkResult:
        """Apply `action` to each order id.

        Raises ValidationError before touching any order when the action is
        unknown, its payload lacks or malforms a required field, or no ids
        were given.
        """

        payload = payload or {}
        order_ids = list(order_ids or [])
        payload = self._validate(action, order_ids, payload)

        result = BulkResult(action=action)
        if action == "recalculate_priorities":
            sweep = self._lifecycle.recalculate_all(cancel=cancel)
            result.total = sweep.updated + sweep.errors
            result.successful = sweep.updated
            result.failed = sweep.errors
            result.errors = sweep.failures[: self._error_limit]
            result.cancelled = sweep.cancelled
        else:
            result.total = len(order_ids)
            for order_id in order_ids:
                if cancel is not None and cancel.is_set():
                    result.cancelled = True
                    result.total = result.successful + result.failed
                    break
                outcome = self._apply_one(action, order_id, payload)
                if outcome.success:
                    result.successful += 1
                    continue
                result.failed += 1
                if len(result.errors) < self._error_limit:
                    result.errors.append(f"{order_id}: {outcome.message}")

        self._metrics.increment("bulk_operations_total")
        self._metrics.increment("bulk_item_failures_total", result.failed)
        log_event(
            logger,
            "bulk_operation_completed",
            action=action,
            total=result.total,
            successful=result.successful,
            failed=result.failed,
            cancelled=result.cancelled,
        )
        return result

    def _apply_one(self, action: str, order_id: str, payload: dict[str, Any]) -> OperationResult:
        if action == "update_status":
            return self._lifecycle.update_status(
                order_id,
                payload["status"],
                changed_by=payload.get("changed_by") or "admin",
                reason=payload.get("reason") or "Bulk status update",
            )
        return self._lifecycle.update_priority(order_id, payload["priority_level"], is_manual=True)

    @staticmethod
    def _validate(action: str, order_ids: list[str], payload: dict[str, Any]) -> dict[str, Any]:
        if action not in BULK_ACTIONS:
            raise ValidationError(f"Invalid bulk action: {action}")
        if action == "recalculate_priorities":
            return payload
        if not order_ids:
            raise ValidationError("order_ids must contain at least one order id")

        if action == "update_status":
            status = payload.get("status")
            if not status:
                raise ValidationError("Status is required for status update")
            if status not in ORDER_STATUSES:
                raise ValidationError(f"Invalid status for status update: {status}")
            return payload

        raw_level = payload.get("priority_level")
        if raw_level is None:
            raise ValidationError("Priority level is required for priority update")
        try:
            level = int(raw_level)
        except (TypeError, ValueError):
            raise ValidationError(f"Priority level must be an integer, got {raw_level!r}") from None
        if not 1 <= level <= 5:
            raise ValidationError(f"Priority level must be between 1 and 5, got {level}")
        return {**payload, "priority_level": level}
