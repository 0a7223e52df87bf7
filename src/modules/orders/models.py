"""Order, OrderItem, OrderTimelineEntry and OrderNotification models.

Rules implemented here (the transition rules live in ``services``):
- ``order_type`` is derived from the items at checkout and never changes.
- Items reference a catalog product, a custom design, or both; a
  design-only item makes the order a custom order.
- ``unit_price`` is a snapshot taken at checkout; ``subtotal`` is always
  ``quantity * unit_price``.
- ``progress_percentage`` stays within [0, 100] (database constraint).
- Timeline entries are append-only: saving an existing entry raises.
- ``version`` is bumped by every committed transition and is part of the
  repository's compare-and-swap.
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

import structlog
from django.core.exceptions import ValidationError
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.utils import timezone

from modules.core.models import BaseModel
from modules.orders.constants import (
    ORDER_NUMBER_MAX_RETRIES,
    PROGRESS_MAX,
    PROGRESS_MIN,
    TERMINAL_STATES,
    OrderStatus,
    OrderType,
    PaymentStatus,
)
from shared.domain.events import DomainEventMixin

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class DeliveryOTP:
    """Read-only view of the delivery confirmation secret."""

    code: str
    generated_at: Optional[datetime]
    verified: bool


class Order(DomainEventMixin, BaseModel):
    """Order aggregate root.

    All workflow fields (status, assignments, progress, OTP, proof of
    delivery, milestone timestamps) are written only through
    ``OrderWorkflowService``, which commits them as one conditional
    update.
    """

    order_number: models.CharField = models.CharField(
        max_length=20, unique=True, editable=False
    )
    customer_id: models.CharField = models.CharField(max_length=64, db_index=True)
    order_type: models.CharField = models.CharField(
        max_length=10,
        choices=OrderType.choices,
        editable=False,
    )
    status: models.CharField = models.CharField(
        max_length=30,
        choices=OrderStatus.choices,
        default=OrderStatus.PENDING,
    )
    payment_status: models.CharField = models.CharField(
        max_length=20,
        choices=PaymentStatus.choices,
        default=PaymentStatus.PENDING,
    )
    total_amount: models.DecimalField = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal("0.00"),
    )
    manager_id: models.CharField = models.CharField(
        max_length=64, null=True, blank=True, default=None
    )
    designer_id: models.CharField = models.CharField(
        max_length=64, null=True, blank=True, default=None, db_index=True
    )
    delivery_person_id: models.CharField = models.CharField(
        max_length=64, null=True, blank=True, default=None, db_index=True
    )
    progress_percentage: models.PositiveSmallIntegerField = (
        models.PositiveSmallIntegerField(
            default=0,
            validators=[
                MinValueValidator(PROGRESS_MIN),
                MaxValueValidator(PROGRESS_MAX),
            ],
        )
    )
    delivery_otp_code: models.CharField = models.CharField(
        max_length=4, null=True, blank=True, default=None
    )
    delivery_otp_generated_at: models.DateTimeField = models.DateTimeField(
        null=True, blank=True, default=None
    )
    delivery_otp_verified: models.BooleanField = models.BooleanField(default=False)
    proof_of_delivery: models.JSONField = models.JSONField(
        null=True, blank=True, default=None
    )
    shipping_address: models.JSONField = models.JSONField(default=dict)
    timestamps: models.JSONField = models.JSONField(default=dict)
    notes: models.TextField = models.TextField(blank=True, default="")
    idempotency_key: models.CharField = models.CharField(
        max_length=255,
        null=True,
        blank=True,
    )
    version: models.PositiveIntegerField = models.PositiveIntegerField(default=0)

    class Meta:
        db_table = "orders"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status"], name="orders_status_idx"),
            models.Index(fields=["-created_at"], name="orders_created_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(progress_percentage__lte=PROGRESS_MAX),
                name="orders_progress_within_bounds",
            ),
            models.UniqueConstraint(
                fields=["customer_id", "idempotency_key"],
                name="orders_customer_idempotency_key_uniq",
            ),
        ]

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATES

    @property
    def delivery_otp(self) -> Optional[DeliveryOTP]:
        if not self.delivery_otp_code:
            return None
        return DeliveryOTP(
            code=self.delivery_otp_code,
            generated_at=self.delivery_otp_generated_at,
            verified=self.delivery_otp_verified,
        )

    def stamp(self, milestone: str, at: datetime) -> None:
        """Record *milestone* in ``timestamps`` unless it is already set."""
        self.timestamps = {**(self.timestamps or {})}
        self.timestamps.setdefault(milestone, at.isoformat())

    @staticmethod
    def generate_order_number() -> str:
        """Generate a human-readable order number: ``ORD-YYYYMMDD-XXXXXX``."""
        now = timezone.now()
        suffix = secrets.token_hex(3).upper()
        return f"ORD-{now:%Y%m%d}-{suffix}"

    def save(self, *args: Any, **kwargs: Any) -> None:
        if not self.order_number:
            for _ in range(ORDER_NUMBER_MAX_RETRIES):
                candidate = self.generate_order_number()
                if not Order.objects.filter(order_number=candidate).exists():
                    self.order_number = candidate
                    break
            else:
                raise RuntimeError(
                    f"Failed to generate unique order_number after "
                    f"{ORDER_NUMBER_MAX_RETRIES} attempts"
                )
        super().save(*args, **kwargs)

    def __str__(self) -> str:
        return f"{self.order_number} ({self.status})"


class OrderItem(BaseModel):
    """Line item referencing a catalog product and/or a custom design.

    ``unit_price`` is a snapshot supplied by checkout and never changes.
    """

    order: models.ForeignKey = models.ForeignKey(
        "orders.Order",
        on_delete=models.CASCADE,
        related_name="items",
    )
    product_id: models.UUIDField = models.UUIDField(null=True, blank=True, default=None)
    design_id: models.UUIDField = models.UUIDField(null=True, blank=True, default=None)
    name: models.CharField = models.CharField(max_length=255, blank=True, default="")
    quantity: models.PositiveIntegerField = models.PositiveIntegerField(
        default=1,
        validators=[MinValueValidator(1)],
    )
    unit_price: models.DecimalField = models.DecimalField(
        max_digits=10,
        decimal_places=2,
    )
    subtotal: models.DecimalField = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        editable=False,
    )
    size: models.CharField = models.CharField(max_length=20, blank=True, default="")
    color: models.CharField = models.CharField(max_length=40, blank=True, default="")

    class Meta:
        db_table = "order_items"
        ordering = ["created_at"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(quantity__gte=1),
                name="order_items_quantity_positive",
            ),
            models.CheckConstraint(
                condition=models.Q(product_id__isnull=False)
                | models.Q(design_id__isnull=False),
                name="order_items_has_reference",
            ),
        ]

    @property
    def is_custom_design(self) -> bool:
        return self.design_id is not None and self.product_id is None

    def clean(self) -> None:
        super().clean()
        if self.product_id is None and self.design_id is None:
            raise ValidationError("An item must reference a product or a design.")
        if self.quantity is not None and self.quantity < 1:
            raise ValidationError({"quantity": "Quantity must be at least 1."})

    def save(self, *args: Any, **kwargs: Any) -> None:
        self.subtotal = self.quantity * self.unit_price
        super().save(*args, **kwargs)

    def __str__(self) -> str:
        reference = self.product_id or self.design_id
        return f"{reference} x{self.quantity} ({self.subtotal})"


class OrderTimelineEntry(BaseModel):
    """One append-only entry in an order's audit timeline.

    ``sequence`` is 1-based and unique per order; entries are read in
    sequence order.  ``actor_id``/``actor_role`` record who triggered
    the transition.
    """

    order: models.ForeignKey = models.ForeignKey(
        "orders.Order",
        on_delete=models.CASCADE,
        related_name="timeline",
    )
    sequence: models.PositiveIntegerField = models.PositiveIntegerField()
    status: models.CharField = models.CharField(
        max_length=30, choices=OrderStatus.choices
    )
    at: models.DateTimeField = models.DateTimeField(default=timezone.now)
    note: models.TextField = models.TextField(blank=True, default="")
    location: models.CharField = models.CharField(
        max_length=255, blank=True, default=""
    )
    actor_id: models.CharField = models.CharField(max_length=64, blank=True, default="")
    actor_role: models.CharField = models.CharField(
        max_length=20, blank=True, default=""
    )

    class Meta:
        db_table = "order_timeline"
        ordering = ["sequence"]
        constraints = [
            models.UniqueConstraint(
                fields=["order", "sequence"],
                name="order_timeline_unique_sequence",
            ),
        ]

    def save(self, *args: Any, **kwargs: Any) -> None:
        if not self._state.adding:
            raise ValidationError("Timeline entries are append-only.")
        super().save(*args, **kwargs)

    def __str__(self) -> str:
        return f"{self.order_id} #{self.sequence}: {self.status}"


class OrderNotification(BaseModel):
    """A message for the order's customer, written once per outbox event."""

    order: models.ForeignKey = models.ForeignKey(
        "orders.Order",
        on_delete=models.CASCADE,
        related_name="notifications",
    )
    recipient_id: models.CharField = models.CharField(max_length=255)
    event_id: models.UUIDField = models.UUIDField(unique=True)
    event_type: models.CharField = models.CharField(max_length=100)
    message: models.CharField = models.CharField(max_length=255)
    read_at: models.DateTimeField = models.DateTimeField(
        null=True, blank=True, default=None
    )

    class Meta:
        db_table = "order_notifications"
        ordering = ["created_at"]
        indexes = [
            models.Index(fields=["recipient_id"], name="order_notif_recipient_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.recipient_id}: {self.message}"
