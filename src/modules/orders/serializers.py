"""Order DRF serializers for API input/output.

The serializer operates at the Interface layer (API Views).
Business logic lives in the Service Layer, which receives
Pydantic DTOs from ``dtos.py`` or plain validated values.
"""

from __future__ import annotations

from rest_framework import serializers

from modules.orders.constants import PROGRESS_MAX, PROGRESS_MIN, PaymentStatus
from modules.orders.models import Order, OrderItem, OrderTimelineEntry

# ---------------------------------------------------------------------------
# Input Serializers
# ---------------------------------------------------------------------------


class CreateOrderItemSerializer(serializers.Serializer):
    """Validates a single priced item handed over by checkout."""

    product_id = serializers.UUIDField(required=False, allow_null=True, default=None)
    design_id = serializers.UUIDField(required=False, allow_null=True, default=None)
    name = serializers.CharField(required=False, default="", allow_blank=True)
    quantity = serializers.IntegerField(min_value=1)
    unit_price = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0)
    size = serializers.CharField(required=False, default="", allow_blank=True)
    color = serializers.CharField(required=False, default="", allow_blank=True)

    def validate(self, attrs):
        if attrs.get("product_id") is None and attrs.get("design_id") is None:
            raise serializers.ValidationError(
                "Item must reference a product or a design."
            )
        return attrs


class ShippingAddressSerializer(serializers.Serializer):
    full_name = serializers.CharField()
    phone = serializers.CharField()
    street = serializers.CharField()
    city = serializers.CharField()
    state = serializers.CharField()
    zip_code = serializers.CharField()
    country = serializers.CharField(required=False, default="IN")


class CreateOrderSerializer(serializers.Serializer):
    """Validates the checkout hand-off payload.

    ``customer_id`` is taken from the authenticated caller, not the body.
    """

    items = CreateOrderItemSerializer(many=True, allow_empty=False)
    shipping_address = ShippingAddressSerializer()
    payment_status = serializers.ChoiceField(
        choices=PaymentStatus.choices, required=False, default=PaymentStatus.PENDING
    )
    notes = serializers.CharField(required=False, default="", allow_blank=True)


class AssignDesignerSerializer(serializers.Serializer):
    designer_id = serializers.CharField(max_length=255)


class AssignDeliverySerializer(serializers.Serializer):
    delivery_person_id = serializers.CharField(max_length=255)


class ProgressSerializer(serializers.Serializer):
    progress_percentage = serializers.IntegerField(
        source="percentage", min_value=PROGRESS_MIN, max_value=PROGRESS_MAX
    )
    note = serializers.CharField(required=False, default="", allow_blank=True)


class NotesSerializer(serializers.Serializer):
    notes = serializers.CharField(required=False, default="", allow_blank=True)


class LocationSerializer(serializers.Serializer):
    location = serializers.CharField(required=False, default="", allow_blank=True)


class DeliverSerializer(serializers.Serializer):
    otp = serializers.CharField(max_length=16, trim_whitespace=False)
    received_by = serializers.CharField(max_length=255)
    relationship = serializers.CharField(required=False, default="", allow_blank=True)
    notes = serializers.CharField(required=False, default="", allow_blank=True)


class CancelOrderSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, default="", allow_blank=True)


# ---------------------------------------------------------------------------
# Output Serializers (Read)
# ---------------------------------------------------------------------------


class OrderItemSerializer(serializers.ModelSerializer):
    class Meta:
        model = OrderItem
        fields = [
            "id",
            "product_id",
            "design_id",
            "name",
            "quantity",
            "unit_price",
            "subtotal",
            "size",
            "color",
        ]
        read_only_fields = fields


class TimelineEntrySerializer(serializers.ModelSerializer):
    class Meta:
        model = OrderTimelineEntry
        fields = ["sequence", "status", "at", "note", "location", "actor_role"]
        read_only_fields = fields


class OrderSerializer(serializers.ModelSerializer):
    """Read serializer for orders with nested items and timeline.

    The delivery OTP code is never part of this representation; the
    tracking endpoint exposes it to the customer and delivery roles only.
    """

    items = OrderItemSerializer(many=True, read_only=True)
    timeline = TimelineEntrySerializer(many=True, read_only=True)

    class Meta:
        model = Order
        fields = [
            "id",
            "order_number",
            "customer_id",
            "order_type",
            "status",
            "payment_status",
            "total_amount",
            "manager_id",
            "designer_id",
            "delivery_person_id",
            "progress_percentage",
            "delivery_otp_verified",
            "proof_of_delivery",
            "shipping_address",
            "timestamps",
            "notes",
            "version",
            "created_at",
            "updated_at",
            "items",
            "timeline",
        ]
        read_only_fields = fields


class OrderListSerializer(serializers.ModelSerializer):
    """Lightweight serializer for order list (no nested relations)."""

    class Meta:
        model = Order
        fields = [
            "id",
            "order_number",
            "customer_id",
            "order_type",
            "status",
            "payment_status",
            "total_amount",
            "progress_percentage",
            "created_at",
        ]
        read_only_fields = fields
