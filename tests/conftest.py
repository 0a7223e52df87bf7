from __future__ import annotations

from decimal import Decimal
from uuid import uuid4

import pytest
from django.core.cache import cache
from rest_framework.test import APIClient

from modules.core.identity import Actor, ActorRole
from modules.orders.constants import OrderStatus, OrderType
from modules.orders.dtos import CreateOrderDTO, CreateOrderItemDTO, ShippingAddressDTO
from modules.orders.repositories.django_repository import OrderDjangoRepository
from modules.orders.services import OrderWorkflowService
from shared.infrastructure.bus import InMemoryEventBus

SHIPPING_ADDRESS = {
    "full_name": "Asha Rao",
    "phone": "+91 98450 12345",
    "street": "12 MG Road",
    "city": "Bengaluru",
    "state": "Karnataka",
    "zip_code": "560001",
    "country": "IN",
}

SHOP_PATH = (
    OrderStatus.ASSIGNED_TO_MANAGER,
    OrderStatus.READY_FOR_PICKUP,
    OrderStatus.PICKED_UP,
    OrderStatus.OUT_FOR_DELIVERY,
    OrderStatus.DELIVERED,
)

CUSTOM_PATH = (
    OrderStatus.ASSIGNED_TO_MANAGER,
    OrderStatus.ASSIGNED_TO_DESIGNER,
    OrderStatus.DESIGNER_ACCEPTED,
    OrderStatus.IN_PRODUCTION,
    OrderStatus.PRODUCTION_COMPLETED,
    OrderStatus.READY_FOR_PICKUP,
    OrderStatus.PICKED_UP,
    OrderStatus.OUT_FOR_DELIVERY,
    OrderStatus.DELIVERED,
)


@pytest.fixture(autouse=True)
def _use_db(db):
    """Automatically use the test database for all tests."""


@pytest.fixture(autouse=True)
def _clear_cache():
    """Throttle counters live in the cache; start every test from zero."""
    cache.clear()


@pytest.fixture()
def api_client():
    """DRF APIClient for testing API endpoints."""
    return APIClient()


@pytest.fixture()
def api_client_with_correlation(api_client):
    """APIClient pre-configured with a known correlation ID header."""
    cid = "test-correlation-id-fixture"
    api_client.defaults["HTTP_X_REQUEST_ID"] = cid
    return api_client, cid


# ---------------------------------------------------------------------------
# Actors
# ---------------------------------------------------------------------------


@pytest.fixture()
def customer() -> Actor:
    return Actor(actor_id="customer-1", role=ActorRole.CUSTOMER)


@pytest.fixture()
def manager() -> Actor:
    return Actor(actor_id="manager-1", role=ActorRole.MANAGER)


@pytest.fixture()
def designer() -> Actor:
    return Actor(actor_id="designer-1", role=ActorRole.DESIGNER)


@pytest.fixture()
def delivery() -> Actor:
    return Actor(actor_id="delivery-1", role=ActorRole.DELIVERY)


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------


@pytest.fixture()
def event_bus() -> InMemoryEventBus:
    return InMemoryEventBus()


@pytest.fixture()
def order_repository() -> OrderDjangoRepository:
    return OrderDjangoRepository()


@pytest.fixture()
def workflow_service(order_repository, event_bus) -> OrderWorkflowService:
    return OrderWorkflowService(order_repository, event_bus=event_bus)


def shop_items() -> list[CreateOrderItemDTO]:
    return [
        CreateOrderItemDTO(
            product_id=uuid4(),
            name="Linen shirt",
            quantity=2,
            unit_price=Decimal("1499.00"),
            size="M",
            color="white",
        )
    ]


def custom_items() -> list[CreateOrderItemDTO]:
    return [
        CreateOrderItemDTO(
            design_id=uuid4(),
            name="Embroidered kurta",
            quantity=1,
            unit_price=Decimal("8500.00"),
            size="L",
        )
    ]


@pytest.fixture()
def make_order(workflow_service, customer):
    """Place an order through the service as ``customer`` would at checkout."""

    def _make(order_type: str = OrderType.SHOP, **overrides):
        items = custom_items() if order_type == OrderType.CUSTOM else shop_items()
        dto = CreateOrderDTO(
            customer_id=overrides.pop("customer_id", customer.actor_id),
            items=overrides.pop("items", items),
            shipping_address=ShippingAddressDTO(**SHIPPING_ADDRESS),
            **overrides,
        )
        return workflow_service.create_order(dto)

    return _make


@pytest.fixture()
def drive(workflow_service, manager, designer, delivery):
    """Move an order along its happy path until it reaches ``target``."""
    service = workflow_service

    def _complete(order):
        service.update_progress(order.id, designer, 100)
        return service.complete_production(order.id, designer)

    steps = {
        OrderStatus.ASSIGNED_TO_MANAGER: lambda o: service.receive_order(o.id, manager),
        OrderStatus.ASSIGNED_TO_DESIGNER: lambda o: service.assign_designer(
            o.id, manager, designer.actor_id
        ),
        OrderStatus.DESIGNER_ACCEPTED: lambda o: service.accept_order(o.id, designer),
        OrderStatus.IN_PRODUCTION: lambda o: service.start_production(o.id, designer),
        OrderStatus.PRODUCTION_COMPLETED: _complete,
        OrderStatus.READY_FOR_PICKUP: lambda o: service.assign_delivery(
            o.id, manager, delivery.actor_id
        ),
        OrderStatus.PICKED_UP: lambda o: service.pick_up(o.id, delivery),
        OrderStatus.OUT_FOR_DELIVERY: lambda o: service.mark_out_for_delivery(
            o.id, delivery
        ),
        OrderStatus.DELIVERED: lambda o: service.deliver(
            o.id, delivery, o.delivery_otp_code, "Asha Rao"
        ),
    }

    def _drive(order, target: str):
        path = CUSTOM_PATH if order.order_type == OrderType.CUSTOM else SHOP_PATH
        for status in path:
            if order.status == target:
                break
            order = steps[status](order)
        assert order.status == target
        return order

    return _drive
