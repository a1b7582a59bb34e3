"""Maps priority scores to levels, labels, fulfillment classes and tags."""

from __future__ import annotations

from typing import Literal

from .scoring import OrderAttributes

FulfillmentPriority = Literal["urgent", "high", "normal", "low"]

LEVEL_LABELS = {1: "URGENT", 2: "HIGH", 3: "NORMAL", 4: "LOW", 5: "LOWEST"}
LEVEL_FULFILLMENT: dict[int, FulfillmentPriority] = {
    1: "urgent",
    2: "high",
    3: "normal",
    4: "low",
    5: "low",
}
EXPRESS_SHIPPING_METHODS = ("express", "overnight", "next_day")
HIGH_VALUE_THRESHOLD = 500.0
LARGE_ORDER_THRESHOLD = 1000.0
PREMIUM_ORDER_THRESHOLD = 2000.0


def score_to_level(score: int) -> int:
    if score >= 80:
        return 1
    if score >= 65:
        return 2
    if score >= 35:
        return 3
    if score >= 20:
        return 4
    return 5


def level_to_label(level: int) -> str:
    return LEVEL_LABELS.get(level, "NORMAL")


def level_to_fulfillment_priority(level: int) -> FulfillmentPriority:
    return LEVEL_FULFILLMENT.get(level, "normal")


def is_express_method(shipping_method: str | None, express_methods=EXPRESS_SHIPPING_METHODS) -> bool:
    return (shipping_method or "").strip().lower() in express_methods


def generate_tags(
    attributes: OrderAttributes,
    *,
    high_value_threshold: float = HIGH_VALUE_THRESHOLD,
    large_order_threshold: float = LARGE_ORDER_THRESHOLD,
    premium_order_threshold: float = PREMIUM_ORDER_THRESHOLD,
    express_methods: tuple[str, ...] = EXPRESS_SHIPPING_METHODS,
) -> list[str]:
    """Derive descriptive tags in canonical order.

    Each tag is evaluated on its own, so an order can carry all six.
    """

    tags: list[str] = []
    total = attributes.total_amount

    if attributes.is_high_value or total >= high_value_threshold:
        tags.append("high_value")
    if attributes.is_express_shipping or is_express_method(attributes.shipping_method, express_methods):
        tags.append("express_shipping")
    if attributes.is_vip_customer:
        tags.append("vip_customer")
    if attributes.is_repeat_customer:
        tags.append("repeat_customer")
    if total >= large_order_threshold:
        tags.append("large_order")
    if total >= premium_order_threshold:
        tags.append("premium_order")

    return tags
