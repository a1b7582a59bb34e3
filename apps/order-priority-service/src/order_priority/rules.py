"""Typed priority rule variants built from stored rule records."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Union

from .errors import RuleEvaluationFault

if TYPE_CHECKING:
    from .scoring import OrderAttributes


ORDER_VALUE_OPERATORS = (">=", ">", "<=", "<", "=")
SHIPPING_METHOD_OPERATORS = ("=", "IN")
CUSTOMER_TIER_FIELDS = ("is_vip_customer", "is_repeat_customer")


@dataclass(frozen=True)
class OrderValueRule:
    """Compares the order total against a numeric threshold."""

    rule_id: str
    rule_name: str
    rule_order: int
    adjustment: int
    field: str
    operator: str
    threshold: float

    def apply(self, attributes: OrderAttributes) -> int:
        if self.field != "total_amount":
            return 0

        value = attributes.total_amount
        if self.operator == ">=":
            matched = value >= self.threshold
        elif self.operator == ">":
            matched = value > self.threshold
        elif self.operator == "<=":
            matched = value <= self.threshold
        elif self.operator == "<":
            matched = value < self.threshold
        elif self.operator == "=":
            matched = value == self.threshold
        else:
            return 0
        return self.adjustment if matched else 0


@dataclass(frozen=True)
class ShippingMethodRule:
    """Matches the shipping method by equality or list membership."""

    rule_id: str
    rule_name: str
    rule_order: int
    adjustment: int
    field: str
    operator: str
    methods: tuple[str, ...]

    def apply(self, attributes: OrderAttributes) -> int:
        if self.field != "shipping_method" or not attributes.shipping_method:
            return 0

        method = attributes.shipping_method.strip().lower()
        if self.operator == "IN":
            return self.adjustment if method in self.methods else 0
        if self.operator == "=":
            return self.adjustment if method == self.methods[0] else 0
        return 0


@dataclass(frozen=True)
class CustomerTierRule:
    """Fires for VIP or repeat customers when the stored value is "true"."""

    rule_id: str
    rule_name: str
    rule_order: int
    adjustment: int
    field: str
    expected: str

    def apply(self, attributes: OrderAttributes) -> int:
        if self.expected != "true":
            return 0
        if self.field == "is_vip_customer":
            return self.adjustment if attributes.is_vip_customer else 0
        if self.field == "is_repeat_customer":
            return self.adjustment if attributes.is_repeat_customer else 0
        return 0


@dataclass(frozen=True)
class UnparseableRule:
    """Known rule type whose stored condition could not be read."""

    rule_id: str
    rule_name: str
    rule_order: int
    adjustment: int
    reason: str

    def apply(self, attributes: OrderAttributes) -> int:
        del attributes
        raise RuleEvaluationFault(f"rule {self.rule_name!r} is unparseable: {self.reason}")


ScoringRule = Union[OrderValueRule, ShippingMethodRule, CustomerTierRule, UnparseableRule]


def rule_from_record(record) -> ScoringRule | None:
    """Build the typed variant for one stored rule; unknown types yield None."""

    common = {
        "rule_id": record.id,
        "rule_name": record.rule_name,
        "rule_order": record.rule_order,
        "adjustment": int(record.priority_adjustment),
    }
    operator = (record.condition_operator or "").strip().upper()

    if record.rule_type == "order_value":
        try:
            threshold = float(record.condition_value)
        except (TypeError, ValueError):
            return UnparseableRule(reason=f"threshold {record.condition_value!r} is not numeric", **common)
        return OrderValueRule(
            field=record.condition_field,
            operator=operator,
            threshold=threshold,
            **common,
        )

    if record.rule_type == "shipping_method":
        if record.condition_value is None:
            return UnparseableRule(reason="missing shipping method list", **common)
        if operator == "IN":
            methods = tuple(
                method.strip().lower() for method in record.condition_value.split(",") if method.strip()
            )
        else:
            methods = (record.condition_value.strip().lower(),)
        return ShippingMethodRule(
            field=record.condition_field,
            operator=operator,
            methods=methods,
            **common,
        )

    if record.rule_type == "customer_tier":
        return CustomerTierRule(
            field=record.condition_field,
            expected=record.condition_value,
            **common,
        )

    return None


def build_rules(records) -> list[ScoringRule]:
    """Convert stored records to variants in evaluation order."""

    rules = [rule for rule in (rule_from_record(record) for record in records) if rule is not None]
    return sorted(rules, key=lambda rule: (rule.rule_order, rule.rule_name))
