"""Domain events for the Orders bounded context.

``OrderStatusChanged`` is raised by every committed transition (a
progress update re-announces the current status) and is what the
notification handler forwards.
"""

from __future__ import annotations

from dataclasses import dataclass

from shared.domain.events import DomainEvent


@dataclass(frozen=True)
class OrderCreated(DomainEvent):
    """Raised when checkout places an order."""

    order_type: str = ""


@dataclass(frozen=True)
class OrderStatusChanged(DomainEvent):
    """Raised after each committed transition."""

    old_status: str = ""
    new_status: str = ""


@dataclass(frozen=True)
class OrderCancelled(DomainEvent):
    """Raised when the customer cancels a pending order."""


@dataclass(frozen=True)
class OrderDelivered(DomainEvent):
    """Raised when delivery is confirmed with the OTP."""

    received_by: str = ""
