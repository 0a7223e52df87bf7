"""Asynchronous tasks for the orders module."""

from typing import Optional

import structlog
from celery import shared_task
from django.db import transaction

from modules.core.models import EventStatus, OutboxEvent
from modules.orders.constants import OrderStatus
from modules.orders.models import Order, OrderNotification

logger = structlog.get_logger(__name__)


def _status_label(status: str) -> str:
    if status in OrderStatus.values:
        return OrderStatus(status).label
    return status


def notification_message(order: Order, outbox: OutboxEvent) -> Optional[str]:
    """Customer-facing text for an outbox event, or ``None`` if it has none.

    Cancellation and delivery also raise ``OrderStatusChanged``, which
    already tells the customer.
    """
    if outbox.event_type == "OrderCreated":
        return f"Order {order.order_number} was placed."
    if outbox.event_type == "OrderStatusChanged":
        old_status = outbox.payload.get("old_status", "")
        new_status = outbox.payload.get("new_status", "")
        if old_status == new_status == OrderStatus.IN_PRODUCTION:
            return f"Production of order {order.order_number} was updated."
        label = _status_label(new_status)
        return f"Order {order.order_number} is now {label.lower()}."
    return None


def record_notification(outbox: OutboxEvent) -> Optional[OrderNotification]:
    """Persist the customer notification for *outbox*.

    Raises:
        Order.DoesNotExist: the event refers to an unknown order.
    """
    order = Order.objects.get(id=outbox.aggregate_id)
    message = notification_message(order, outbox)
    if message is None:
        return None
    notification, _ = OrderNotification.objects.get_or_create(
        event_id=outbox.id,
        defaults={
            "order": order,
            "recipient_id": order.customer_id,
            "event_type": outbox.event_type,
            "message": message,
        },
    )
    return notification


@shared_task(name="orders.deliver_outbox_event")
def deliver_outbox_event(event_id):
    """Deliver one outbox event and acknowledge its row.

    Pending rows are events no consumer has handled yet.  A failed
    delivery marks the row failed and re-raises so the worker sees it.
    """
    log = logger.bind(event_id=event_id)
    outbox = OutboxEvent.objects.filter(id=event_id).first()
    if outbox is None:
        log.warning("order.outbox_event_missing")
        return {"status": "missing", "event_id": event_id}
    if outbox.status == EventStatus.PUBLISHED:
        return {"status": "published", "event_id": event_id}

    try:
        with transaction.atomic():
            notification = record_notification(outbox)
    except Exception as exc:
        outbox.mark_as_failed(str(exc))
        log.error("order.outbox_event_failed", event_type=outbox.event_type, error=str(exc))
        raise

    outbox.mark_as_published()
    log.info(
        "order.outbox_event_delivered",
        event_type=outbox.event_type,
        order_id=outbox.aggregate_id,
        notified=notification is not None,
    )
    return {"status": "published", "event_id": event_id}
