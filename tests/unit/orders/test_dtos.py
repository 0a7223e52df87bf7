"""Unit tests for Order DTOs.

Covers:
- CreateOrderItemDTO: quantity validation, reference requirement, frozen.
- CreateOrderDTO: items list validation, total, defaults.
- OrderTrackingDTO: JSON dump of the tracking view.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest
from pydantic import ValidationError

from modules.orders.constants import PaymentStatus
from modules.orders.dtos import (
    CreateOrderDTO,
    CreateOrderItemDTO,
    OrderTrackingDTO,
    ShippingAddressDTO,
    TrackingStepDTO,
)

pytestmark = pytest.mark.unit

ADDRESS = ShippingAddressDTO(
    full_name="Asha Rao",
    phone="+91 98450 12345",
    street="12 MG Road",
    city="Bengaluru",
    state="Karnataka",
    zip_code="560001",
)


def _item(**overrides) -> CreateOrderItemDTO:
    fields = {"product_id": uuid4(), "quantity": 1, "unit_price": Decimal("100.00")}
    fields.update(overrides)
    return CreateOrderItemDTO(**fields)


class TestCreateOrderItemDTO:
    def test_valid_item(self):
        dto = _item(quantity=3)
        assert dto.quantity == 3

    def test_design_only_item(self):
        dto = _item(product_id=None, design_id=uuid4())
        assert dto.product_id is None

    @pytest.mark.parametrize("quantity", [0, -1])
    def test_quantity_must_be_positive(self, quantity):
        with pytest.raises(ValidationError, match="Quantity must be at least 1"):
            _item(quantity=quantity)

    def test_negative_price_rejected(self):
        with pytest.raises(ValidationError):
            _item(unit_price=Decimal("-1.00"))

    def test_reference_required(self):
        with pytest.raises(ValidationError, match="product or a design"):
            _item(product_id=None)

    def test_is_immutable(self):
        dto = _item()
        with pytest.raises(ValidationError):
            dto.quantity = 5


class TestCreateOrderDTO:
    def test_defaults(self):
        dto = CreateOrderDTO(
            customer_id="customer-1", items=[_item()], shipping_address=ADDRESS
        )

        assert dto.payment_status == PaymentStatus.PENDING
        assert dto.notes == ""
        assert dto.idempotency_key is None
        assert dto.shipping_address.country == "IN"

    def test_empty_items_rejected(self):
        with pytest.raises(ValidationError, match="at least one item"):
            CreateOrderDTO(customer_id="customer-1", items=[], shipping_address=ADDRESS)

    def test_shipping_address_required(self):
        with pytest.raises(ValidationError):
            CreateOrderDTO(customer_id="customer-1", items=[_item()])

    def test_unknown_payment_status_rejected(self):
        with pytest.raises(ValidationError):
            CreateOrderDTO(
                customer_id="customer-1",
                items=[_item()],
                shipping_address=ADDRESS,
                payment_status="refunded",
            )


class TestOrderTrackingDTO:
    def test_json_dump(self):
        at = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)
        order_id = uuid4()
        dto = OrderTrackingDTO(
            order_id=order_id,
            order_number="ORD-20260301-ABC123",
            order_type="shop",
            current_status="pending",
            current_index=0,
            steps=[
                TrackingStepDTO(
                    position=0, status="pending", completed=True, current=True, timestamp=at
                )
            ],
            progress_percentage=0,
            timeline=[],
            shipping_address={"city": "Bengaluru"},
        )

        data = dto.model_dump(mode="json")

        assert data["order_id"] == str(order_id)
        assert data["steps"][0]["timestamp"].startswith("2026-03-01T09:00:00")
        assert data["delivery_otp"] is None
