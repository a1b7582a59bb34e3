"""Additive rule scoring for order priority."""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Iterable

from .errors import RuleEvaluationFault
from .observability import PriorityMetrics, log_event
from .rules import ScoringRule

logger = logging.getLogger("order_priority.scoring")

MIN_SCORE = 1
MAX_SCORE = 100


@dataclass(frozen=True)
class OrderAttributes:
    """Order fields read by scoring, classification and tagging."""

    total_amount: float
    shipping_method: str = ""
    is_express_shipping: bool = False
    is_high_value: bool = False
    is_vip_customer: bool = False
    is_repeat_customer: bool = False

    @classmethod
    def from_order(cls, order) -> "OrderAttributes":
        return cls(
            total_amount=float(order.total_amount or 0.0),
            shipping_method=order.shipping_method or "",
            is_express_shipping=bool(order.is_express_shipping),
            is_high_value=bool(order.is_high_value),
            is_vip_customer=bool(order.is_vip_customer),
            is_repeat_customer=bool(order.is_repeat_customer),
        )


def clamp_score(score: int) -> int:
    return max(MIN_SCORE, min(MAX_SCORE, score))


class ScoringEngine:
    """Applies active rules in order on top of a base score."""

    def __init__(self, *, base_score: int = 50, metrics: PriorityMetrics | None = None) -> None:
        self._base_score = base_score
        self._metrics = metrics

    def compute_score(self, attributes: OrderAttributes, rules: Iterable[ScoringRule]) -> int:
        """Return the clamped score for one order."""

        score = self._base_score
        for rule in sorted(rules, key=lambda item: item.rule_order):
            try:
                score += rule.apply(attributes)
            except RuleEvaluationFault as exc:
                self._record_fault(rule, str(exc))
            except Exception as exc:
                self._record_fault(rule, f"{type(exc).__name__}: {exc}")
        return clamp_score(score)

    def _record_fault(self, rule: ScoringRule, error: str) -> None:
        if self._metrics is not None:
            self._metrics.increment("rule_faults_total")
        log_event(
            logger,
            "priority_rule_fault",
            rule_id=rule.rule_id,
            rule_name=rule.rule_name,
            error=error,
        )
