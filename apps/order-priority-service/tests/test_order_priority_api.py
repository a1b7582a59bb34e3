"""API tests for order priority service."""

from collections.abc import Generator

from fastapi.testclient import TestClient
import pytest

from order_priority.main import app
from order_priority.runtime import get_runtime


def _order_payload(*, total_amount: float = 120.0, shipping_method: str = "standard") -> dict:
    return {
        "customer_email": "buyer@example.com",
        "total_amount": total_amount,
        "subtotal": total_amount,
        "shipping_method": shipping_method,
        "items": [
            {
                "product_name": "Aurora Desk",
                "quantity": 1,
                "unit_price": total_amount,
                "total_price": total_amount,
            }
        ],
    }


@pytest.fixture
def client(runtime) -> Generator[TestClient, None, None]:
    app.dependency_overrides[get_runtime] = lambda: runtime
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def _create(client: TestClient, **kwargs) -> dict:
    response = client.post("/orders", json=_order_payload(**kwargs))
    assert response.status_code == 201
    return response.json()["data"]


def test_health_and_metrics(client) -> None:
    health = client.get("/health")
    assert health.status_code == 200
    assert health.json()["service"] == "order-priority-service"

    _create(client)
    metrics = client.get("/metrics")
    assert metrics.status_code == 200
    assert "order_priority_orders_created_total 1" in metrics.text


def test_metrics_can_be_disabled(client, runtime) -> None:
    runtime.settings.metrics_enabled = False

    response = client.get("/metrics")

    assert response.status_code == 404
    assert response.json()["error"]["code"] == "NOT_FOUND"


def test_create_order_returns_computed_priority(client, add_rule) -> None:
    add_rule()

    response = client.post("/orders", json=_order_payload(total_amount=650, shipping_method="express"))

    assert response.status_code == 201
    body = response.json()
    assert body["message"] == "Order created successfully with automatic priority assignment"
    data = body["data"]
    assert data["priority_score"] == 85
    assert data["priority_level"] == 1
    assert data["fulfillment_priority"] == "urgent"
    assert data["priority_tags"] == ["high_value", "express_shipping"]
    assert data["items"][0]["product_name"] == "Aurora Desk"


def test_create_order_rejects_invalid_payload(client) -> None:
    payload = _order_payload()
    payload["items"] = []

    response = client.post("/orders", json=payload, headers={"x-trace-id": "trace-create-1"})

    assert response.status_code == 422
    error = response.json()["error"]
    assert error["code"] == "UNPROCESSABLE_ENTITY"
    assert error["trace_id"] == "trace-create-1"


def test_dashboard_listing_filters_and_paginates(client) -> None:
    for _ in range(3):
        _create(client, total_amount=700)
    _create(client, total_amount=50)

    response = client.get("/orders", params={"is_high_value": "true", "limit": 2, "offset": 0})

    assert response.status_code == 200
    body = response.json()
    assert body["total"] == 3
    assert len(body["data"]) == 2
    assert body["pagination"] == {"limit": 2, "offset": 0, "total": 3, "pages": 2, "current_page": 1}
    assert body["data"][0]["priority_label"] == "NORMAL"
    assert body["data"][0]["hours_since_placed"] >= 0


def test_get_order_and_missing_order_envelope(client) -> None:
    created = _create(client)

    found = client.get(f"/orders/{created['id']}")
    missing = client.get("/orders/unknown-order", headers={"x-trace-id": "trace-missing"})

    assert found.status_code == 200
    assert found.json()["data"]["order_number"] == created["order_number"]
    assert missing.status_code == 404
    assert missing.json()["error"] == {
        "code": "NOT_FOUND",
        "message": "Order unknown-order not found",
        "trace_id": "trace-missing",
    }


def test_patch_updates_priority_and_status(client) -> None:
    created = _create(client)

    priority = client.patch(f"/orders/{created['id']}", json={"action": "update_priority", "priority_level": 2})
    status = client.patch(
        f"/orders/{created['id']}",
        json={"action": "update_status", "status": "confirmed", "changed_by": "ops", "reason": "payment cleared"},
    )

    assert priority.status_code == 200
    assert priority.json()["data"]["priority_level"] == 2
    assert priority.json()["data"]["manual_priority_override"] is True
    assert status.status_code == 200
    assert status.json()["data"]["confirmed_at"] is not None

    history = client.get(f"/orders/{created['id']}/history").json()["items"]
    assert [(entry["previous_status"], entry["new_status"], entry["changed_by"]) for entry in history] == [
        ("pending", "confirmed", "ops")
    ]


def test_patch_validation_and_not_found(client) -> None:
    created = _create(client)

    missing_status = client.patch(f"/orders/{created['id']}", json={"action": "update_status"})
    missing_order = client.patch("/orders/ghost", json={"action": "update_priority", "priority_level": 1})
    history_missing = client.get("/orders/ghost/history")

    assert missing_status.status_code == 400
    assert missing_status.json()["error"]["code"] == "VALIDATION_ERROR"
    assert missing_order.status_code == 404
    assert history_missing.status_code == 404


def test_bulk_priority_update_reports_partial_failure(client) -> None:
    first = _create(client)
    third = _create(client)

    response = client.post(
        "/orders/bulk",
        json={
            "action": "update_priority",
            "order_ids": [first["id"], "missing-id", third["id"]],
            "data": {"priority_level": 1},
        },
    )

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is False
    assert body["message"] == "Bulk update priority completed. 2 successful, 1 failed."
    assert body["results"]["total"] == 3
    assert body["results"]["successful"] == 2
    assert body["results"]["failed"] == 1
    assert body["results"]["errors"][0].startswith("missing-id: ")


def test_bulk_rejects_unknown_action(client) -> None:
    response = client.post("/orders/bulk", json={"action": "archive", "order_ids": ["a"]})

    assert response.status_code == 400
    assert response.json()["error"]["message"] == "Invalid bulk action: archive"


def test_recalculate_endpoint(client, add_rule) -> None:
    created = _create(client, total_amount=600)
    add_rule()

    response = client.post("/orders/recalculate")

    assert response.json() == {"success": True, "updated": 1, "errors": 0, "skipped": 0, "cancelled": False}
    assert client.get(f"/orders/{created['id']}").json()["data"]["priority_level"] == 1


def test_notifications_flow(client, runtime) -> None:
    created = _create(client, total_amount=800)
    runtime.listener.drain()

    listing = client.get("/notifications", params={"recipient_type": "admin"})
    items = listing.json()["items"]
    assert len(items) == 1
    assert items[0]["notification_type"] == "high_value_detected"
    assert items[0]["order"]["order_number"] == created["order_number"]

    marked = client.post("/notifications/read", json={"notification_ids": [items[0]["id"]]})
    assert marked.json() == {"success": True, "updated": 1}

    stats = client.get("/notifications/stats").json()
    assert stats["total_unread"] == 0
    assert stats["unread_notifications"] == {"admin": 0, "fulfillment": 0, "customer_service": 0}


def test_alerts_flow(client, runtime, add_rule) -> None:
    add_rule(condition_value="100", priority_adjustment=40)
    _create(client, total_amount=1500)
    runtime.listener.drain()

    alerts = client.get("/alerts").json()["items"]
    assert {alert["alert_type"] for alert in alerts} == {"urgent_priority", "high_value_order"}
    assert client.get("/notifications/stats").json()["total_active_alerts"] == 2

    ids = [alert["id"] for alert in alerts]
    first = client.post("/alerts/acknowledge", json={"alert_ids": ids, "acknowledged_by": "lead"})
    again = client.post("/alerts/acknowledge", json={"alert_ids": ids, "acknowledged_by": "lead"})

    assert first.json()["updated"] == 2
    assert again.json()["updated"] == 0
    assert client.get("/alerts").json()["items"] == []


def test_rules_and_summary(client, add_rule) -> None:
    add_rule(rule_name="big basket", rule_order=2)
    add_rule(rule_name="inactive", is_active=False)
    _create(client, total_amount=900)

    rules = client.get("/rules").json()["items"]
    summary = client.get("/orders/summary").json()

    assert [rule["rule_name"] for rule in rules] == ["big basket"]
    assert summary["window_days"] == 30
    assert summary["total_orders"] == 1
    assert summary["urgent_orders"] == 1
    assert summary["high_value_orders"] == 1
