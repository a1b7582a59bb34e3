"""HTTP routes for order priority service."""

from dataclasses import asdict
from datetime import datetime, timezone
import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import PlainTextResponse

from .dashboard import DashboardItem
from .errors import ApiError, ValidationError, api_error_for
from .models import Order, OrderNotification, PriorityAlert
from .observability import log_event
from .repositories import OrderFilter, OrderSort
from .runtime import ServiceRuntime, get_runtime
from .schemas import (
    AcknowledgeAlertsRequest,
    AlertItem,
    AlertListResponse,
    BulkOperationRequest,
    BulkOperationResponse,
    CreateOrderRequest,
    CreateOrderResponse,
    CustomerSummary,
    DashboardOrder,
    DashboardOrderResponse,
    DashboardPagination,
    DashboardResponse,
    DashboardSummary,
    HealthResponse,
    MarkNotificationsReadRequest,
    MutationCountResponse,
    NotificationItem,
    NotificationListResponse,
    NotificationOrderSummary,
    NotificationStatsResponse,
    OperationResponse,
    OrderResponse,
    OrderStatus,
    OrderWithItemsResponse,
    PriorityRuleItem,
    PriorityRuleListResponse,
    RecalculationResponse,
    RecipientType,
    SortField,
    SortOrder,
    StatusHistoryItem,
    StatusHistoryResponse,
    UpdateOrderRequest,
)

router = APIRouter()
logger = logging.getLogger("order_priority")


def _trace_id(request: Request) -> str | None:
    return request.headers.get("x-trace-id", "").strip() or None


def _dashboard_order(item: DashboardItem) -> DashboardOrder:
    customer = None
    if item.customer is not None:
        customer = CustomerSummary(
            first_name=item.customer.first_name,
            last_name=item.customer.last_name,
            loyalty_tier=item.customer.loyalty_tier,
            is_vip=item.customer.is_vip,
        )
    return DashboardOrder(
        **OrderResponse.model_validate(item.order).model_dump(),
        customer=customer,
        priority_label=item.priority_label,
        hours_since_placed=item.hours_since_placed,
    )


def _order_summary(order: Order | None) -> NotificationOrderSummary | None:
    if order is None:
        return None
    return NotificationOrderSummary(
        order_number=order.order_number,
        customer_email=order.customer_email,
        total_amount=order.total_amount,
        status=order.status,
        priority_level=order.priority_level,
    )


def _notification_item(notification: OrderNotification) -> NotificationItem:
    return NotificationItem(
        id=notification.id,
        order_id=notification.order_id,
        notification_type=notification.notification_type,
        priority_level=notification.priority_level,
        recipient_type=notification.recipient_type,
        message=notification.message,
        is_read=notification.is_read,
        created_at=notification.created_at,
        order=_order_summary(notification.order),
    )


def _alert_item(alert: PriorityAlert) -> AlertItem:
    return AlertItem(
        id=alert.id,
        order_id=alert.order_id,
        alert_type=alert.alert_type,
        alert_message=alert.alert_message,
        priority_score=alert.priority_score,
        is_acknowledged=alert.is_acknowledged,
        acknowledged_by=alert.acknowledged_by,
        acknowledged_at=alert.acknowledged_at,
        created_at=alert.created_at,
        order=_order_summary(alert.order),
    )


@router.get("/health", response_model=HealthResponse)
def health(runtime: ServiceRuntime = Depends(get_runtime)) -> HealthResponse:
    return HealthResponse(
        service=runtime.settings.service_name,
        version=runtime.settings.service_version,
        timestamp=datetime.now(tz=timezone.utc),
    )


@router.get("/metrics", response_class=PlainTextResponse)
def metrics(runtime: ServiceRuntime = Depends(get_runtime)) -> str:
    if not runtime.settings.metrics_enabled:
        raise HTTPException(status_code=404, detail="metrics endpoint disabled")
    return runtime.metrics.render_prometheus()


@router.post("/orders", response_model=CreateOrderResponse, status_code=201)
def create_order(
    payload: CreateOrderRequest,
    request: Request,
    runtime: ServiceRuntime = Depends(get_runtime),
) -> CreateOrderResponse:
    result = runtime.lifecycle.create_order(payload)
    if not result.success:
        error = api_error_for(result.error)
        error.trace_id = _trace_id(request)
        raise error

    return CreateOrderResponse(
        data=OrderWithItemsResponse.model_validate(result.order),
        message="Order created successfully with automatic priority assignment",
    )


@router.get("/orders", response_model=DashboardResponse)
def list_orders(
    status: list[OrderStatus] | None = Query(default=None),
    priority_level: list[int] | None = Query(default=None),
    shipping_method: list[str] | None = Query(default=None),
    is_high_value: bool | None = Query(default=None),
    is_vip_customer: bool | None = Query(default=None),
    search: str | None = Query(default=None, max_length=255),
    sort_by: SortField = Query(default="priority_level"),
    sort_order: SortOrder = Query(default="asc"),
    limit: int | None = Query(default=None, ge=1),
    offset: int = Query(default=0, ge=0),
    runtime: ServiceRuntime = Depends(get_runtime),
) -> DashboardResponse:
    page = runtime.dashboard.query(
        OrderFilter(
            statuses=status or (),
            priority_levels=priority_level or (),
            shipping_methods=shipping_method or (),
            is_high_value=is_high_value,
            is_vip_customer=is_vip_customer,
            search=search,
        ),
        OrderSort(sort_by=sort_by, sort_order=sort_order),
        offset=offset,
        limit=limit,
    )
    return DashboardResponse(
        data=[_dashboard_order(item) for item in page.items],
        total=page.total,
        pagination=DashboardPagination(
            limit=page.limit,
            offset=page.offset,
            total=page.total,
            pages=page.pages,
            current_page=page.current_page,
        ),
    )


@router.get("/orders/summary", response_model=DashboardSummary)
def orders_summary(
    window_days: int | None = Query(default=None, ge=1, le=365),
    runtime: ServiceRuntime = Depends(get_runtime),
) -> DashboardSummary:
    summary = runtime.dashboard.summary(window_days)
    return DashboardSummary(window_days=summary.window_days, **asdict(summary.counts))


@router.post("/orders/bulk", response_model=BulkOperationResponse)
def bulk_update_orders(
    payload: BulkOperationRequest,
    request: Request,
    runtime: ServiceRuntime = Depends(get_runtime),
) -> BulkOperationResponse:
    data = payload.data.model_dump(exclude_none=True) if payload.data is not None else {}
    try:
        result = runtime.bulk.bulk_apply(payload.action, payload.order_ids, data)
    except ValidationError as exc:
        raise ApiError(
            status_code=400,
            code="VALIDATION_ERROR",
            message=str(exc),
            trace_id=_trace_id(request),
        ) from exc
    return BulkOperationResponse.model_validate(result.as_payload())


@router.post("/orders/recalculate", response_model=RecalculationResponse)
def recalculate_priorities(runtime: ServiceRuntime = Depends(get_runtime)) -> RecalculationResponse:
    result = runtime.lifecycle.recalculate_all()
    return RecalculationResponse(
        success=result.errors == 0,
        updated=result.updated,
        errors=result.errors,
        skipped=result.skipped,
        cancelled=result.cancelled,
    )


@router.get("/orders/{order_id}", response_model=DashboardOrderResponse)
def get_order(order_id: str, request: Request, runtime: ServiceRuntime = Depends(get_runtime)) -> DashboardOrderResponse:
    item = runtime.dashboard.get(order_id)
    if item is None:
        raise ApiError(
            status_code=404,
            code="NOT_FOUND",
            message=f"Order {order_id} not found",
            trace_id=_trace_id(request),
        )
    return DashboardOrderResponse(data=_dashboard_order(item))


@router.get("/orders/{order_id}/history", response_model=StatusHistoryResponse)
def get_order_history(order_id: str, runtime: ServiceRuntime = Depends(get_runtime)) -> StatusHistoryResponse:
    history = runtime.lifecycle.list_status_history(order_id)
    return StatusHistoryResponse(items=[StatusHistoryItem.model_validate(entry) for entry in history])


@router.patch("/orders/{order_id}", response_model=OperationResponse)
def update_order(
    order_id: str,
    payload: UpdateOrderRequest,
    request: Request,
    runtime: ServiceRuntime = Depends(get_runtime),
) -> OperationResponse:
    trace_id = _trace_id(request)
    if payload.action == "update_status":
        if payload.status is None:
            raise ApiError(
                status_code=400,
                code="VALIDATION_ERROR",
                message="Status is required for status update",
                trace_id=trace_id,
            )
        result = runtime.lifecycle.update_status(
            order_id,
            payload.status,
            changed_by=payload.changed_by or "admin",
            reason=payload.reason,
        )
    else:
        if payload.priority_level is None:
            raise ApiError(
                status_code=400,
                code="VALIDATION_ERROR",
                message="Priority level is required for priority update",
                trace_id=trace_id,
            )
        result = runtime.lifecycle.update_priority(order_id, payload.priority_level, is_manual=True)

    if not result.success:
        error = api_error_for(result.error)
        error.trace_id = trace_id
        raise error

    log_event(logger, "order_update_applied", order_id=order_id, action=payload.action, trace_id=trace_id)
    return OperationResponse(
        success=True,
        message=result.message,
        data=OrderResponse.model_validate(result.order),
    )


@router.get("/rules", response_model=PriorityRuleListResponse)
def list_rules(runtime: ServiceRuntime = Depends(get_runtime)) -> PriorityRuleListResponse:
    rules = runtime.orders.list_active_rules()
    return PriorityRuleListResponse(items=[PriorityRuleItem.model_validate(rule) for rule in rules])


@router.get("/notifications", response_model=NotificationListResponse)
def list_notifications(
    recipient_type: RecipientType = Query(...),
    limit: int | None = Query(default=None, ge=1, le=500),
    runtime: ServiceRuntime = Depends(get_runtime),
) -> NotificationListResponse:
    notifications = runtime.notifications.list_unread(
        recipient_type,
        limit or runtime.settings.unread_notifications_limit,
    )
    return NotificationListResponse(items=[_notification_item(item) for item in notifications])


@router.post("/notifications/read", response_model=MutationCountResponse)
def mark_notifications_read(
    payload: MarkNotificationsReadRequest,
    runtime: ServiceRuntime = Depends(get_runtime),
) -> MutationCountResponse:
    return MutationCountResponse(updated=runtime.notifications.mark_read(payload.notification_ids))


@router.get("/notifications/stats", response_model=NotificationStatsResponse)
def notification_stats(runtime: ServiceRuntime = Depends(get_runtime)) -> NotificationStatsResponse:
    return NotificationStatsResponse.model_validate(runtime.dashboard.notification_stats())


@router.get("/alerts", response_model=AlertListResponse)
def list_alerts(
    limit: int | None = Query(default=None, ge=1, le=500),
    runtime: ServiceRuntime = Depends(get_runtime),
) -> AlertListResponse:
    alerts = runtime.alerts.list_unacknowledged(limit or runtime.settings.active_alerts_limit)
    return AlertListResponse(items=[_alert_item(alert) for alert in alerts])


@router.post("/alerts/acknowledge", response_model=MutationCountResponse)
def acknowledge_alerts(
    payload: AcknowledgeAlertsRequest,
    request: Request,
    runtime: ServiceRuntime = Depends(get_runtime),
) -> MutationCountResponse:
    updated = runtime.alerts.acknowledge(
        payload.alert_ids,
        payload.acknowledged_by,
        datetime.now(tz=timezone.utc),
    )
    log_event(
        logger,
        "priority_alerts_acknowledged",
        acknowledged_by=payload.acknowledged_by,
        requested=len(payload.alert_ids),
        updated=updated,
        trace_id=_trace_id(request),
    )
    return MutationCountResponse(updated=updated)
