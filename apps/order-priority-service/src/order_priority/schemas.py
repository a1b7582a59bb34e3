"""Pydantic schemas for order priority service APIs."""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


OrderStatus = Literal["pending", "confirmed", "processing", "shipped", "delivered", "cancelled"]
FulfillmentPriority = Literal["urgent", "high", "normal", "low"]
RecipientType = Literal["admin", "fulfillment", "customer_service"]
NotificationType = Literal[
    "priority_assigned",
    "high_value_detected",
    "vip_customer",
    "express_shipping",
    "status_changed",
]
AlertType = Literal["urgent_priority", "high_value_order", "vip_customer_order", "express_shipping"]
RealtimeEventType = Literal["order_created", "order_updated"]
SortOrder = Literal["asc", "desc"]
SortField = Literal[
    "priority_level",
    "priority_score",
    "placed_at",
    "created_at",
    "total_amount",
    "order_number",
    "status",
    "customer_email",
]


class CreateOrderItemRequest(BaseModel):
    product_name: str = Field(min_length=1, max_length=255)
    product_id: str | None = Field(default=None, max_length=36)
    product_sku: str | None = Field(default=None, max_length=100)
    product_category: str | None = Field(default=None, max_length=100)
    quantity: int = Field(ge=1)
    unit_price: float = Field(ge=0)
    total_price: float = Field(ge=0)
    is_digital: bool = False
    requires_special_handling: bool = False


class CreateOrderRequest(BaseModel):
    """Order placement payload; priority fields are always computed."""

    customer_email: str = Field(min_length=3, max_length=255)
    customer_id: str | None = Field(default=None, max_length=36)
    total_amount: float = Field(ge=0)
    subtotal: float = Field(ge=0)
    tax_amount: float = Field(default=0.0, ge=0)
    shipping_amount: float = Field(default=0.0, ge=0)
    discount_amount: float = Field(default=0.0, ge=0)
    shipping_method: str = Field(min_length=1, max_length=50)
    billing_address: dict[str, Any] | None = None
    shipping_address: dict[str, Any] | None = None
    items: list[CreateOrderItemRequest] = Field(min_length=1)


class UpdateOrderRequest(BaseModel):
    action: Literal["update_status", "update_priority"]
    status: OrderStatus | None = None
    priority_level: int | None = Field(default=None, ge=1, le=5)
    changed_by: str | None = Field(default=None, min_length=1, max_length=100)
    reason: str | None = Field(default=None, max_length=500)


class BulkOperationData(BaseModel):
    status: OrderStatus | None = None
    priority_level: int | None = Field(default=None, ge=1, le=5)
    changed_by: str | None = Field(default=None, min_length=1, max_length=100)
    reason: str | None = Field(default=None, max_length=500)


class BulkOperationRequest(BaseModel):
    action: str = Field(min_length=1, max_length=64)
    order_ids: list[str] = Field(default_factory=list)
    data: BulkOperationData | None = None


class MarkNotificationsReadRequest(BaseModel):
    notification_ids: list[str] = Field(min_length=1)


class AcknowledgeAlertsRequest(BaseModel):
    alert_ids: list[str] = Field(min_length=1)
    acknowledged_by: str = Field(min_length=1, max_length=100)


class OrderItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    product_name: str
    product_id: str | None
    product_sku: str | None
    product_category: str | None
    quantity: int
    unit_price: float
    total_price: float
    is_digital: bool
    requires_special_handling: bool


class OrderResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    order_number: str
    customer_id: str | None
    customer_email: str
    status: OrderStatus
    total_amount: float
    subtotal: float
    tax_amount: float
    shipping_amount: float
    discount_amount: float
    priority_level: int = Field(ge=1, le=5)
    priority_score: int = Field(ge=1, le=100)
    auto_priority_assigned: bool
    manual_priority_override: bool
    fulfillment_priority: FulfillmentPriority
    shipping_method: str
    is_express_shipping: bool
    is_repeat_customer: bool
    customer_order_count: int
    is_high_value: bool
    is_vip_customer: bool
    priority_tags: list[str]
    placed_at: datetime
    confirmed_at: datetime | None
    shipped_at: datetime | None
    delivered_at: datetime | None


class OrderWithItemsResponse(OrderResponse):
    items: list[OrderItemResponse]


class CreateOrderResponse(BaseModel):
    success: bool = True
    data: OrderWithItemsResponse
    message: str


class CustomerSummary(BaseModel):
    first_name: str | None
    last_name: str | None
    loyalty_tier: str
    is_vip: bool


class DashboardOrder(OrderResponse):
    customer: CustomerSummary | None
    priority_label: str
    hours_since_placed: float


class DashboardPagination(BaseModel):
    limit: int
    offset: int
    total: int
    pages: int
    current_page: int


class DashboardResponse(BaseModel):
    success: bool = True
    data: list[DashboardOrder]
    total: int
    pagination: DashboardPagination


class DashboardOrderResponse(BaseModel):
    success: bool = True
    data: DashboardOrder


class DashboardSummary(BaseModel):
    window_days: int
    total_orders: int
    pending_orders: int
    processing_orders: int
    shipped_orders: int
    urgent_orders: int
    high_priority_orders: int
    high_value_orders: int
    express_orders: int
    vip_orders: int
    total_order_value: float
    average_order_value: float


class StatusHistoryItem(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    order_id: str
    previous_status: str | None
    new_status: str
    changed_by: str | None
    change_reason: str | None
    priority_before: int | None
    priority_after: int | None
    created_at: datetime


class StatusHistoryResponse(BaseModel):
    items: list[StatusHistoryItem]


class OperationResponse(BaseModel):
    success: bool
    message: str
    data: OrderResponse | None = None


class BulkResultBody(BaseModel):
    total: int = Field(ge=0)
    successful: int = Field(ge=0)
    failed: int = Field(ge=0)
    errors: list[str] = Field(max_length=10)


class BulkOperationResponse(BaseModel):
    success: bool
    message: str
    cancelled: bool = False
    results: BulkResultBody


class RecalculationResponse(BaseModel):
    success: bool
    updated: int
    errors: int
    skipped: int
    cancelled: bool


class PriorityRuleItem(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    rule_name: str
    rule_type: str
    condition_field: str
    condition_operator: str
    condition_value: str
    priority_adjustment: int
    rule_order: int
    description: str | None


class PriorityRuleListResponse(BaseModel):
    items: list[PriorityRuleItem]


class NotificationOrderSummary(BaseModel):
    order_number: str
    customer_email: str
    total_amount: float
    status: OrderStatus
    priority_level: int


class NotificationItem(BaseModel):
    id: str
    order_id: str
    notification_type: NotificationType
    priority_level: int
    recipient_type: RecipientType
    message: str
    is_read: bool
    created_at: datetime
    order: NotificationOrderSummary | None = None


class NotificationListResponse(BaseModel):
    items: list[NotificationItem]


class AlertItem(BaseModel):
    id: str
    order_id: str
    alert_type: AlertType
    alert_message: str
    priority_score: int
    is_acknowledged: bool
    acknowledged_by: str | None = None
    acknowledged_at: datetime | None = None
    created_at: datetime
    order: NotificationOrderSummary | None = None


class AlertListResponse(BaseModel):
    items: list[AlertItem]


class MutationCountResponse(BaseModel):
    success: bool = True
    updated: int = Field(ge=0)


class NotificationStatsResponse(BaseModel):
    unread_notifications: dict[RecipientType, int]
    active_alerts: dict[AlertType, int]
    total_unread: int
    total_active_alerts: int


class RealtimeOrderSummary(BaseModel):
    id: str
    order_number: str
    priority_level: int = Field(ge=1, le=5)
    priority_label: str
    total_amount: float
    customer_email: str
    status: OrderStatus
    is_high_value: bool
    is_vip_customer: bool
    is_express_shipping: bool
    priority_tags: list[str]


class RealtimeOrderEvent(BaseModel):
    """Envelope broadcast to dashboard subscribers."""

    event_id: str
    type: RealtimeEventType
    order: RealtimeOrderSummary
    timestamp: datetime
    produced_by: str
    notifications_created: int = Field(default=0, ge=0)
    alerts_created: int = Field(default=0, ge=0)


class HealthResponse(BaseModel):
    """Health endpoint response."""

    status: Literal["ok"] = "ok"
    service: str
    version: str
    timestamp: datetime
