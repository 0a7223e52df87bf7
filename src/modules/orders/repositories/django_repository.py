"""Django ORM implementation of the Order repository.

``commit`` is the compare-and-swap the workflow relies on: a single
``UPDATE orders SET ... WHERE id = %s AND status = %s AND version = %s``.
Zero affected rows means another transition won the race and the
caller gets ``ConcurrencyConflict``.  The timeline entry and outbox rows
are written in the same transaction, so either the whole transition is
visible or none of it is.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict, Optional

import structlog
from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import Count, F, QuerySet, Sum
from django.utils import timezone

from modules.core.models import OutboxEvent
from modules.orders.constants import PaymentStatus
from modules.orders.exceptions import ConcurrencyConflict
from modules.orders.models import Order, OrderItem, OrderTimelineEntry
from modules.orders.repositories.interfaces import IOrderRepository

logger = structlog.get_logger(__name__)

OUTBOX_TOPIC = "orders"

# Columns a transition may change.  Everything else is fixed at checkout.
WORKFLOW_FIELDS = (
    "status",
    "manager_id",
    "designer_id",
    "delivery_person_id",
    "progress_percentage",
    "delivery_otp_code",
    "delivery_otp_generated_at",
    "delivery_otp_verified",
    "proof_of_delivery",
    "timestamps",
)


class OrderDjangoRepository(IOrderRepository):
    """Concrete Order repository backed by Django ORM."""

    def _base_queryset(self) -> QuerySet:
        return Order.objects.prefetch_related("items", "timeline")

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    @transaction.atomic
    def create(self, data: Dict[str, Any]) -> Order:
        order = Order(
            customer_id=data["customer_id"],
            order_type=data["order_type"],
            payment_status=data.get("payment_status", PaymentStatus.PENDING),
            shipping_address=data["shipping_address"],
            timestamps=data.get("timestamps", {}),
            idempotency_key=data.get("idempotency_key"),
            notes=data.get("notes", ""),
        )
        order.save()

        total = Decimal("0.00")
        items = data["items"]
        for item_data in items:
            item = OrderItem(
                order=order,
                product_id=item_data.get("product_id"),
                design_id=item_data.get("design_id"),
                name=item_data.get("name", ""),
                quantity=item_data["quantity"],
                unit_price=item_data["unit_price"],
                size=item_data.get("size", ""),
                color=item_data.get("color", ""),
            )
            item.save()
            total += item.subtotal

        order.total_amount = total
        order.save(update_fields=["total_amount"])

        logger.info(
            "order.persisted",
            order_id=str(order.id),
            order_type=order.order_type,
            item_count=len(items),
        )
        return order

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def get_by_id(self, id: str) -> Optional[Order]:
        """Return the order with items and timeline, or ``None`` for unknown/invalid IDs."""
        try:
            return self._base_queryset().filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def get_for_update(self, id: str) -> Optional[Order]:
        """Same as ``get_by_id`` but takes a row lock (``SELECT ... FOR UPDATE``).

        Must be called inside a transaction.  On backends without row
        locks (SQLite) the compare-and-swap in ``commit`` still guards
        against lost updates.
        """
        try:
            return self._base_queryset().select_for_update().filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def list(self, filters: Optional[Dict[str, Any]] = None) -> QuerySet:
        queryset = self._base_queryset()
        if filters:
            queryset = queryset.filter(**filters)
        return queryset

    def get_by_idempotency_key(self, customer_id: str, key: str) -> Optional[Order]:
        return (
            self._base_queryset()
            .filter(customer_id=customer_id, idempotency_key=key)
            .first()
        )

    def status_summary(
        self, filters: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Dict[str, Any]]:
        rows = (
            Order.objects.filter(**(filters or {}))
            .order_by()
            .values("status")
            .annotate(count=Count("id"), amount=Sum("total_amount"))
        )
        return {
            row["status"]: {"count": row["count"], "amount": row["amount"] or Decimal("0.00")}
            for row in rows
        }

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    @transaction.atomic
    def save(self, entity: Order) -> Order:
        """Persist an order outside the workflow (checkout, backfills) and flush its events."""
        entity.save()
        self._write_outbox(entity)
        return entity

    @transaction.atomic
    def commit(
        self,
        order: Order,
        expected_status: str,
        entry: OrderTimelineEntry,
    ) -> Order:
        now = timezone.now()
        changes = {field: getattr(order, field) for field in WORKFLOW_FIELDS}
        updated = Order.objects.filter(
            id=order.id,
            status=expected_status,
            version=order.version,
        ).update(**changes, version=F("version") + 1, updated_at=now)

        if not updated:
            logger.warning(
                "order.commit_conflict",
                order_id=str(order.id),
                expected_status=expected_status,
                expected_version=order.version,
            )
            raise ConcurrencyConflict(
                f"Order {order.id} was modified concurrently; reload and retry."
            )

        order.version += 1
        order.updated_at = now

        entry.order = order
        entry.sequence = OrderTimelineEntry.objects.filter(order_id=order.id).count() + 1
        entry.save()

        event_count = self._write_outbox(order)
        logger.info(
            "order.committed",
            order_id=str(order.id),
            status=order.status,
            version=order.version,
            timeline_sequence=entry.sequence,
            event_count=event_count,
        )
        return order

    def _write_outbox(self, order: Order) -> int:
        events = order.domain_events
        for event in events:
            OutboxEvent.objects.create(
                id=event.event_id,
                event_type=event.event_name,
                aggregate_id=str(event.aggregate_id),
                payload=event.to_payload(),
                topic=OUTBOX_TOPIC,
            )
        order.clear_domain_events()
        return len(events)
