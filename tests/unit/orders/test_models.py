"""Unit tests for Order, OrderItem and OrderTimelineEntry models."""

from __future__ import annotations

import re
from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest
from django.core.exceptions import ValidationError
from django.db import IntegrityError

from modules.orders.constants import OrderStatus, OrderType
from modules.orders.models import Order, OrderItem, OrderTimelineEntry

pytestmark = pytest.mark.unit

ORDER_NUMBER = re.compile(r"^ORD-\d{8}-[0-9A-F]{6}$")


def _order(**overrides) -> Order:
    fields = {
        "customer_id": "customer-1",
        "order_type": OrderType.SHOP,
        "shipping_address": {"city": "Pune"},
    }
    fields.update(overrides)
    return Order.objects.create(**fields)


class TestOrder:
    def test_defaults(self):
        order = _order()

        assert order.status == OrderStatus.PENDING
        assert order.progress_percentage == 0
        assert order.version == 0
        assert order.manager_id is None
        assert order.designer_id is None
        assert order.delivery_person_id is None
        assert order.delivery_otp is None
        assert not order.is_terminal

    def test_order_number_format(self):
        assert ORDER_NUMBER.match(_order().order_number)

    def test_order_numbers_are_unique(self):
        numbers = {_order().order_number for _ in range(5)}
        assert len(numbers) == 5

    def test_stamp_keeps_first_value(self):
        order = _order()
        first = datetime(2026, 1, 1, tzinfo=timezone.utc)
        second = datetime(2026, 1, 2, tzinfo=timezone.utc)

        order.stamp("picked_up", first)
        order.stamp("picked_up", second)

        assert order.timestamps["picked_up"] == first.isoformat()

    def test_delivery_otp_view(self):
        generated = datetime(2026, 1, 1, tzinfo=timezone.utc)
        order = _order(delivery_otp_code="4821", delivery_otp_generated_at=generated)

        otp = order.delivery_otp

        assert otp.code == "4821"
        assert otp.generated_at == generated
        assert otp.verified is False

    @pytest.mark.parametrize("status", [OrderStatus.DELIVERED, OrderStatus.CANCELLED])
    def test_terminal(self, status):
        assert _order(status=status).is_terminal

    def test_progress_upper_bound_enforced_by_database(self):
        with pytest.raises(IntegrityError):
            _order(progress_percentage=101)

    def test_progress_validators(self):
        order = Order(
            customer_id="c",
            order_type=OrderType.CUSTOM,
            progress_percentage=150,
        )
        with pytest.raises(ValidationError) as exc_info:
            order.full_clean(exclude=["order_number"])

        assert "progress_percentage" in exc_info.value.message_dict


class TestOrderItem:
    def test_subtotal_is_computed(self):
        item = OrderItem.objects.create(
            order=_order(),
            product_id=uuid4(),
            quantity=3,
            unit_price=Decimal("499.50"),
        )

        assert item.subtotal == Decimal("1498.50")

    def test_design_only_item_is_custom(self):
        item = OrderItem(design_id=uuid4(), quantity=1, unit_price=Decimal("1"))
        assert item.is_custom_design

    def test_item_without_reference_fails_clean(self):
        item = OrderItem(order=_order(), quantity=1, unit_price=Decimal("10.00"))
        with pytest.raises(ValidationError):
            item.clean()

    def test_item_without_reference_rejected_by_database(self):
        with pytest.raises(IntegrityError):
            OrderItem.objects.create(
                order=_order(), quantity=1, unit_price=Decimal("10.00")
            )


class TestOrderTimelineEntry:
    def test_entries_are_append_only(self):
        entry = OrderTimelineEntry.objects.create(
            order=_order(),
            sequence=1,
            status=OrderStatus.ASSIGNED_TO_MANAGER,
        )
        entry.note = "rewritten"

        with pytest.raises(ValidationError):
            entry.save()

    def test_sequence_unique_per_order(self):
        order = _order()
        OrderTimelineEntry.objects.create(
            order=order, sequence=1, status=OrderStatus.ASSIGNED_TO_MANAGER
        )
        with pytest.raises(IntegrityError):
            OrderTimelineEntry.objects.create(
                order=order, sequence=1, status=OrderStatus.READY_FOR_PICKUP
            )

    def test_read_in_sequence_order(self):
        order = _order()
        for sequence, status in (
            (2, OrderStatus.READY_FOR_PICKUP),
            (1, OrderStatus.ASSIGNED_TO_MANAGER),
        ):
            OrderTimelineEntry.objects.create(
                order=order, sequence=sequence, status=status
            )

        assert [e.sequence for e in order.timeline.all()] == [1, 2]
