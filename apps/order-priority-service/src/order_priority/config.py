"""Runtime configuration for order priority service."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Service settings loaded from environment variables."""

    service_name: str = "order-priority-service"
    service_version: str = "0.1.0"
    log_level: str = "INFO"
    metrics_enabled: bool = True

    database_url: str = "sqlite:///./order_priority.db"
    sql_echo: bool = False

    event_produced_by: str = "apps/order-priority-service"
    base_score: int = 50
    high_value_threshold: float = 500.0
    large_order_threshold: float = 1000.0
    premium_order_threshold: float = 2000.0
    express_shipping_methods: tuple[str, ...] = ("express", "overnight", "next_day")
    recalculable_statuses: tuple[str, ...] = ("pending", "confirmed", "processing")

    order_number_prefix: str = "ORD"
    order_number_max_attempts: int = 3
    bulk_error_limit: int = 10
    dashboard_default_limit: int = 20
    dashboard_max_limit: int = 200
    summary_window_days: int = 30

    unread_notifications_limit: int = 50
    active_alerts_limit: int = 100
    broadcast_channel: str = "admin-notifications"
    subscriber_queue_size: int = 256
    listener_poll_seconds: float = 1.0

    notification_retention_days: int = 30
    cleanup_interval_seconds: int = 3600
    cleanup_pass_timeout_seconds: float = 30.0

    model_config = SettingsConfigDict(env_prefix="ORDER_PRIORITY_", extra="ignore")


def get_settings() -> Settings:
    """Return settings object."""

    return Settings()
