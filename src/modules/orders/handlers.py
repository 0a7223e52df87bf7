"""Event handlers for Orders domain events.

Every order event has an outbox row; each handler queues its delivery
so the row is acknowledged once a worker has handled it.
"""

from __future__ import annotations

import structlog

from modules.orders.events import (
    OrderCancelled,
    OrderCreated,
    OrderDelivered,
    OrderStatusChanged,
)
from modules.orders.tasks import deliver_outbox_event
from shared.domain.bus import IEventHandler
from shared.domain.events import DomainEvent

logger = structlog.get_logger(__name__)


def _queue_delivery(event: DomainEvent) -> None:
    deliver_outbox_event.delay(str(event.event_id))


class OrderCreatedHandler(IEventHandler[OrderCreated]):
    def handle(self, event: OrderCreated) -> None:
        _queue_delivery(event)
        logger.info(
            "order.created_event",
            order_id=str(event.aggregate_id),
            order_type=event.order_type,
        )


class OrderCancelledHandler(IEventHandler[OrderCancelled]):
    def handle(self, event: OrderCancelled) -> None:
        _queue_delivery(event)
        logger.info("order.cancelled_event", order_id=str(event.aggregate_id))


class OrderDeliveredHandler(IEventHandler[OrderDelivered]):
    def handle(self, event: OrderDelivered) -> None:
        _queue_delivery(event)
        logger.info(
            "order.delivered_event",
            order_id=str(event.aggregate_id),
            received_by=event.received_by,
        )


class OrderStatusChangedHandler(IEventHandler[OrderStatusChanged]):
    """Queues the customer notification for a committed transition."""

    def handle(self, event: OrderStatusChanged) -> None:
        _queue_delivery(event)
        logger.info(
            "order.notification_queued",
            order_id=str(event.aggregate_id),
            event_id=str(event.event_id),
            new_status=event.new_status,
        )


order_created_handler = OrderCreatedHandler()
order_cancelled_handler = OrderCancelledHandler()
order_delivered_handler = OrderDeliveredHandler()
order_status_changed_handler = OrderStatusChangedHandler()
