"""Tests for order creation, priority updates, recalculation and status transitions."""

import re
from threading import Event

from conftest import order_request

from order_priority.errors import NotFoundError, PersistenceError, ValidationError


def test_create_order_assigns_priority_and_persists_items(runtime, add_rule) -> None:
    add_rule()

    result = runtime.lifecycle.create_order(order_request(total_amount=600, shipping_method="Express"))

    assert result.success is True
    order = runtime.lifecycle.get_order(result.order.id)
    assert re.fullmatch(r"ORD-\d{8}-[0-9A-Z]{4}", order.order_number)
    assert order.status == "pending"
    assert order.priority_score == 85
    assert order.priority_level == 1
    assert order.fulfillment_priority == "urgent"
    assert order.auto_priority_assigned is True
    assert order.manual_priority_override is False
    assert order.is_high_value is True
    assert order.is_express_shipping is True
    assert order.priority_tags == ["high_value", "express_shipping"]
    assert len(order.items) == 1
    assert order.items[0].product_sku == "LAMP-001"
    assert runtime.metrics.value("orders_created_total") == 1

    change = runtime.feed.next_event()
    assert change.event == "insert"
    assert change.current.id == order.id


def test_create_order_enriches_from_customer_history(runtime, add_customer) -> None:
    loyal = add_customer(email="loyal@example.com", total_orders=3, is_vip=True, loyalty_tier="gold")
    newcomer = add_customer(email="new@example.com", total_orders=1)

    loyal_order = runtime.lifecycle.create_order(
        order_request(customer_email=loyal.email, customer_id=loyal.id)
    ).order
    newcomer_order = runtime.lifecycle.create_order(
        order_request(customer_email=newcomer.email, customer_id=newcomer.id)
    ).order

    assert loyal_order.is_vip_customer is True
    assert loyal_order.is_repeat_customer is True
    assert loyal_order.customer_order_count == 4
    assert loyal_order.priority_tags == ["vip_customer", "repeat_customer"]
    assert newcomer_order.is_repeat_customer is False
    assert newcomer_order.customer_order_count == 2


def test_create_order_retries_on_order_number_conflict(runtime, create_order) -> None:
    existing = create_order()
    numbers = iter([existing.order_number, "ORD-12345678-ZZZZ"])
    runtime.lifecycle.generate_order_number = lambda now=None: next(numbers)

    result = runtime.lifecycle.create_order(order_request())

    assert result.success is True
    assert result.order.order_number == "ORD-12345678-ZZZZ"


def test_create_order_fails_after_exhausting_order_numbers(runtime, create_order) -> None:
    existing = create_order()
    runtime.lifecycle.generate_order_number = lambda now=None: existing.order_number

    result = runtime.lifecycle.create_order(order_request())

    assert result.success is False
    assert isinstance(result.error, PersistenceError)
    assert runtime.metrics.value("order_create_failures_total") == 1
    page = runtime.dashboard.query()
    assert page.total == 1


def test_update_priority_sets_manual_override_without_touching_score(runtime, create_order) -> None:
    order = create_order(total_amount=150)

    result = runtime.lifecycle.update_priority(order.id, 2)

    assert result.success is True
    stored = runtime.lifecycle.get_order(order.id)
    assert stored.priority_level == 2
    assert stored.fulfillment_priority == "high"
    assert stored.manual_priority_override is True
    assert stored.priority_score == order.priority_score
    assert stored.priority_tags == order.priority_tags


def test_update_priority_reports_missing_order_and_bad_level(runtime) -> None:
    missing = runtime.lifecycle.update_priority("does-not-exist", 1)
    invalid = runtime.lifecycle.update_priority("does-not-exist", 9)

    assert missing.success is False
    assert isinstance(missing.error, NotFoundError)
    assert "does-not-exist" in missing.message
    assert isinstance(invalid.error, ValidationError)


def test_recalculate_all_skips_manually_overridden_orders(runtime, create_order, add_rule) -> None:
    first = create_order(total_amount=600)
    second = create_order(total_amount=600)
    third = create_order(total_amount=600)
    runtime.lifecycle.update_priority(second.id, 4)
    add_rule()

    result = runtime.lifecycle.recalculate_all()

    assert result.updated == 2
    assert result.errors == 0
    for order_id in (first.id, third.id):
        refreshed = runtime.lifecycle.get_order(order_id)
        assert refreshed.priority_score == 85
        assert refreshed.priority_level == 1
        assert refreshed.fulfillment_priority == "urgent"
        assert refreshed.auto_priority_assigned is True
    untouched = runtime.lifecycle.get_order(second.id)
    assert untouched.priority_score == 50
    assert untouched.priority_level == 4


def test_recalculate_all_ignores_closed_orders(runtime, create_order, add_rule) -> None:
    shipped = create_order(total_amount=600)
    runtime.lifecycle.update_status(shipped.id, "shipped")
    add_rule()

    result = runtime.lifecycle.recalculate_all()

    assert result.updated == 0
    assert runtime.lifecycle.get_order(shipped.id).priority_score == 50


def test_override_set_mid_sweep_is_not_overwritten(runtime, create_order, add_rule, monkeypatch) -> None:
    racing = create_order(total_amount=600)
    other = create_order(total_amount=600)
    add_rule()
    stale_read = runtime.orders.list_orders_by_status(runtime.settings.recalculable_statuses, False)
    runtime.lifecycle.update_priority(racing.id, 5)
    monkeypatch.setattr(runtime.orders, "list_orders_by_status", lambda statuses, override_flag: stale_read)

    result = runtime.lifecycle.recalculate_all()

    assert result.updated == 1
    assert result.skipped == 1
    assert runtime.lifecycle.get_order(racing.id).priority_level == 5
    assert runtime.lifecycle.get_order(other.id).priority_level == 1


def test_recalculate_all_stops_when_cancelled(runtime, create_order) -> None:
    create_order()
    cancel = Event()
    cancel.set()

    result = runtime.lifecycle.recalculate_all(cancel=cancel)

    assert result.cancelled is True
    assert result.updated == 0


def test_update_status_records_timestamp_and_single_history_row(runtime, create_order) -> None:
    order = create_order()

    result = runtime.lifecycle.update_status(order.id, "shipped", changed_by="ops", reason="carrier pickup")

    assert result.success is True
    stored = runtime.lifecycle.get_order(order.id)
    assert stored.status == "shipped"
    assert stored.shipped_at is not None
    assert stored.confirmed_at is None
    history = runtime.lifecycle.list_status_history(order.id)
    assert len(history) == 1
    assert history[0].previous_status == "pending"
    assert history[0].new_status == "shipped"
    assert history[0].changed_by == "ops"
    assert history[0].change_reason == "carrier pickup"
    assert history[0].priority_before == history[0].priority_after == stored.priority_level


def test_update_status_rejects_missing_order_and_unknown_status(runtime, create_order) -> None:
    order = create_order()

    missing = runtime.lifecycle.update_status("nope", "confirmed")
    unknown = runtime.lifecycle.update_status(order.id, "teleported")

    assert isinstance(missing.error, NotFoundError)
    assert isinstance(unknown.error, ValidationError)
    assert runtime.lifecycle.list_status_history(order.id) == []
