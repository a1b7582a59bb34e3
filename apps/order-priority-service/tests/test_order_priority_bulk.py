"""Tests for the bulk operation coordinator."""

from threading import Event

import pytest

from order_priority.errors import ValidationError


def test_bulk_priority_update_counts_missing_order(runtime, create_order) -> None:
    first = create_order()
    third = create_order()

    result = runtime.bulk.bulk_apply("update_priority", [first.id, "missing-id", third.id], {"priority_level": 1})

    assert (result.total, result.successful, result.failed) == (3, 2, 1)
    assert len(result.errors) == 1
    assert result.errors[0].startswith("missing-id: ")
    assert result.success is False
    assert result.message == "Bulk update priority completed. 2 successful, 1 failed."
    for order_id in (first.id, third.id):
        stored = runtime.lifecycle.get_order(order_id)
        assert stored.priority_level == 1
        assert stored.manual_priority_override is True


def test_bulk_errors_are_capped(runtime) -> None:
    order_ids = [f"ghost-{index}" for index in range(15)]

    result = runtime.bulk.bulk_apply("update_status", order_ids, {"status": "confirmed"})

    assert result.total == result.successful + result.failed == 15
    assert result.failed == 15
    assert len(result.errors) == 10
    assert result.errors[0].startswith("ghost-0: ")
    assert runtime.metrics.value("bulk_item_failures_total") == 15


def test_bulk_status_update_uses_admin_defaults(runtime, create_order) -> None:
    order = create_order()

    result = runtime.bulk.bulk_apply("update_status", [order.id], {"status": "processing"})

    assert result.success is True
    history = runtime.lifecycle.list_status_history(order.id)
    assert [(entry.new_status, entry.changed_by, entry.change_reason) for entry in history] == [
        ("processing", "admin", "Bulk status update")
    ]


@pytest.mark.parametrize(
    ("action", "order_ids", "payload", "message"),
    [
        ("archive", ["x"], {}, "Invalid bulk action"),
        ("update_status", ["x"], {}, "Status is required"),
        ("update_priority", ["x"], {"status": "shipped"}, "Priority level is required"),
        ("update_priority", [], {"priority_level": 2}, "at least one order id"),
        ("update_priority", ["x"], {"priority_level": 9}, "between 1 and 5"),
        ("update_priority", ["x"], {"priority_level": 0}, "between 1 and 5"),
        ("update_priority", ["x"], {"priority_level": "high"}, "must be an integer"),
        ("update_status", ["x"], {"status": "teleported"}, "Invalid status"),
    ],
)
def test_bulk_validation_happens_before_any_mutation(
    runtime, create_order, action, order_ids, payload, message
) -> None:
    order = create_order()
    runtime.feed.reset()

    with pytest.raises(ValidationError, match=message):
        runtime.bulk.bulk_apply(action, [order.id, *order_ids] if order_ids else [], payload)

    assert runtime.feed.pending() == 0
    stored = runtime.lifecycle.get_order(order.id)
    assert stored.status == "pending"
    assert stored.manual_priority_override is False
    assert runtime.metrics.value("bulk_operations_total") == 0


def test_bulk_recalculate_ignores_order_ids(runtime, create_order, add_rule) -> None:
    create_order(total_amount=600)
    create_order(total_amount=700)
    add_rule()

    result = runtime.bulk.bulk_apply("recalculate_priorities", ["ignored"], None)

    assert (result.total, result.successful, result.failed) == (2, 2, 0)
    assert result.message == "Bulk recalculate priorities completed. 2 successful, 0 failed."


def test_bulk_stops_between_orders_when_cancelled(runtime, create_order, monkeypatch) -> None:
    orders = [create_order() for _ in range(3)]
    cancel = Event()
    apply_priority = runtime.lifecycle.update_priority

    def _update_then_cancel(order_id, new_level, is_manual=True):
        outcome = apply_priority(order_id, new_level, is_manual=is_manual)
        cancel.set()
        return outcome

    monkeypatch.setattr(runtime.lifecycle, "update_priority", _update_then_cancel)

    result = runtime.bulk.bulk_apply("update_priority", [order.id for order in orders], {"priority_level": 2}, cancel)

    assert result.cancelled is True
    assert (result.total, result.successful, result.failed) == (1, 1, 0)
    assert runtime.lifecycle.get_order(orders[1].id).priority_level == 3
