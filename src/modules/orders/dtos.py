"""Order DTOs for the service layer.

Framework-agnostic, immutable pydantic v2 models:

- ``CreateOrderDTO`` / ``CreateOrderItemDTO`` / ``ShippingAddressDTO``:
  the fully formed order handed over by checkout.
- ``OrderTrackingDTO`` and its parts: the read-only tracking view.
- ``OrderStatisticsDTO``: per-status counts for dashboards.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from modules.orders.constants import PaymentStatus

# ---------------------------------------------------------------------------
# Input DTOs
# ---------------------------------------------------------------------------


class ShippingAddressDTO(BaseModel):
    """Delivery destination copied onto the order at checkout."""

    model_config = ConfigDict(frozen=True)

    full_name: str
    phone: str
    street: str
    city: str
    state: str
    zip_code: str
    country: str = "IN"


class CreateOrderItemDTO(BaseModel):
    """A priced line item.  Checkout has already validated the price."""

    model_config = ConfigDict(frozen=True)

    product_id: Optional[UUID] = None
    design_id: Optional[UUID] = None
    name: str = ""
    quantity: int
    unit_price: Decimal = Field(ge=0)
    size: str = ""
    color: str = ""

    @field_validator("quantity")
    @classmethod
    def quantity_must_be_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Quantity must be at least 1.")
        return v

    @model_validator(mode="after")
    def must_reference_product_or_design(self):
        if self.product_id is None and self.design_id is None:
            raise ValueError("Item must reference a product or a design.")
        return self


class CreateOrderDTO(BaseModel):
    """Order handed over by checkout, always created as ``pending``."""

    model_config = ConfigDict(frozen=True)

    customer_id: str
    items: List[CreateOrderItemDTO]
    shipping_address: ShippingAddressDTO
    payment_status: PaymentStatus = PaymentStatus.PENDING
    notes: Optional[str] = ""
    idempotency_key: Optional[str] = None

    @field_validator("items")
    @classmethod
    def items_must_not_be_empty(
        cls, v: List[CreateOrderItemDTO]
    ) -> List[CreateOrderItemDTO]:
        if not v:
            raise ValueError("Order must have at least one item.")
        return v


# ---------------------------------------------------------------------------
# Output DTOs
# ---------------------------------------------------------------------------


class TimelineEntryDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    sequence: int
    status: str
    at: datetime
    note: str = ""
    location: str = ""


class TrackingStepDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    position: int
    status: str
    completed: bool
    current: bool
    timestamp: Optional[datetime] = None


class DeliveryOTPDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    code: str
    generated_at: Optional[datetime]
    verified: bool


class OrderTrackingDTO(BaseModel):
    """Tracking view of one order, scoped to the viewer's role."""

    model_config = ConfigDict(frozen=True)

    order_id: UUID
    order_number: str
    order_type: str
    current_status: str
    current_index: int
    steps: List[TrackingStepDTO]
    progress_percentage: int
    timeline: List[TimelineEntryDTO]
    shipping_address: dict
    designer_id: Optional[str] = None
    delivery_person_id: Optional[str] = None
    delivery_otp: Optional[DeliveryOTPDTO] = None
    proof_of_delivery: Optional[dict] = None


class OrderStatisticsDTO(BaseModel):
    """Order counts for a dashboard, scoped like the order listing.

    ``by_status`` has every status, zero when no order is in it.
    ``revenue`` sums the totals of orders that were not cancelled.
    """

    model_config = ConfigDict(frozen=True)

    total: int
    pending: int
    completed: int
    cancelled: int
    revenue: Decimal
    by_status: Dict[str, int]
