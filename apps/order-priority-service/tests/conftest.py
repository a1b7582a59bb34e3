"""Shared fixtures for order priority service tests."""

from collections.abc import Callable, Generator
from datetime import datetime, timezone
from pathlib import Path
import sys

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

ROOT = Path(__file__).resolve().parents[1]
sys.path.append(str(ROOT / "src"))

from order_priority.config import Settings  # noqa: E402
from order_priority.db import Base, init_db  # noqa: E402
from order_priority.models import Customer, PriorityRule  # noqa: E402
from order_priority.observability import PriorityMetrics  # noqa: E402
from order_priority.runtime import ServiceRuntime, build_runtime  # noqa: E402
from order_priority.schemas import CreateOrderRequest  # noqa: E402


@pytest.fixture
def session_factory() -> Generator[Callable[[], Session], None, None]:
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    testing_session_local = sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)
    init_db(bind=engine)
    try:
        yield testing_session_local
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def settings() -> Settings:
    return Settings(metrics_enabled=True)


@pytest.fixture
def runtime(session_factory, settings) -> ServiceRuntime:
    return build_runtime(settings, session_factory, metrics=PriorityMetrics())


@pytest.fixture
def add_rule(session_factory) -> Callable[..., PriorityRule]:
    def _add_rule(
        *,
        rule_type: str = "order_value",
        condition_field: str = "total_amount",
        condition_operator: str = ">=",
        condition_value: str = "500",
        priority_adjustment: int = 35,
        rule_order: int = 1,
        rule_name: str | None = None,
        is_active: bool = True,
    ) -> PriorityRule:
        rule = PriorityRule(
            rule_name=rule_name or f"{rule_type}_{condition_value}_{rule_order}",
            rule_type=rule_type,
            condition_field=condition_field,
            condition_operator=condition_operator,
            condition_value=condition_value,
            priority_adjustment=priority_adjustment,
            rule_order=rule_order,
            is_active=is_active,
            created_at=datetime.now(tz=timezone.utc),
        )
        with session_factory() as session:
            session.add(rule)
            session.commit()
        return rule

    return _add_rule


@pytest.fixture
def add_customer(session_factory) -> Callable[..., Customer]:
    def _add_customer(
        *,
        email: str = "vip@example.com",
        total_orders: int = 0,
        is_vip: bool = False,
        loyalty_tier: str = "bronze",
        first_name: str = "Ada",
        last_name: str = "Lovelace",
    ) -> Customer:
        now = datetime.now(tz=timezone.utc)
        customer = Customer(
            email=email,
            first_name=first_name,
            last_name=last_name,
            total_orders=total_orders,
            is_vip=is_vip,
            loyalty_tier=loyalty_tier,
            created_at=now,
            updated_at=now,
        )
        with session_factory() as session:
            session.add(customer)
            session.commit()
        return customer

    return _add_customer


def order_request(
    *,
    total_amount: float = 120.0,
    shipping_method: str = "standard",
    customer_email: str = "buyer@example.com",
    customer_id: str | None = None,
) -> CreateOrderRequest:
    return CreateOrderRequest(
        customer_email=customer_email,
        customer_id=customer_id,
        total_amount=total_amount,
        subtotal=total_amount,
        shipping_method=shipping_method,
        shipping_address={"city": "Lisbon", "country": "PT"},
        items=[
            {
                "product_name": "Aurora Lamp",
                "product_sku": "LAMP-001",
                "quantity": 2,
                "unit_price": total_amount / 2,
                "total_price": total_amount,
            }
        ],
    )


@pytest.fixture
def create_order(runtime) -> Callable[..., object]:
    def _create_order(**kwargs):
        result = runtime.lifecycle.create_order(order_request(**kwargs))
        assert result.success, result.error
        return result.order

    return _create_order
