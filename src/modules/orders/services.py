"""Order workflow service (the transition engine).

The only code path that changes an order after checkout.  Every public
command is scoped to one actor role and follows the same shape:

1. Validate caller-supplied input (nothing is loaded yet).
2. Load and lock the order (``SELECT FOR UPDATE``).
3. Check role, then current status against the transition graph, then
   the assignment (the caller must be the assigned designer / delivery
   person / owning customer).  Cancellation checks ownership before
   status.
4. Apply the change in memory, append one timeline entry and commit the
   whole aggregate with a compare-and-swap on (status, version).
5. After the database commit, publish the collected domain events.

Any failed check raises before step 4, so a rejected call leaves the
stored order exactly as it was.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from functools import partial
from typing import TYPE_CHECKING, Any, Callable, Dict, Iterable, Optional
from uuid import UUID

import structlog
from django.db import transaction
from django.utils import timezone

from modules.core.identity import Actor, ActorRole
from modules.orders.constants import (
    DELIVERY_ELIGIBLE_STATES,
    MILESTONE_FOR_STATUS,
    PROGRESS_MAX,
    PROGRESS_MIN,
    Milestone,
    OrderStatus,
)
from modules.orders.dtos import OrderStatisticsDTO
from modules.orders.events import (
    OrderCancelled,
    OrderCreated,
    OrderDelivered,
    OrderStatusChanged,
)
from modules.orders.exceptions import (
    AlreadyAssigned,
    OrderNotFound,
    OrderWorkflowError,
    TransitionValidationError,
    WrongRole,
    WrongState,
)
from modules.orders.models import OrderTimelineEntry
from modules.orders.otp import ensure_delivery_otp, verify_delivery_otp
from modules.orders.tracking import TrackingProjector
from modules.orders.workflow import can_transition, order_type_for
from shared.infrastructure.bus import event_bus as default_event_bus

if TYPE_CHECKING:
    from modules.orders.dtos import CreateOrderDTO, OrderTrackingDTO
    from modules.orders.models import Order
    from modules.orders.repositories.interfaces import IOrderRepository
    from shared.domain.bus import IEventBus

logger = structlog.get_logger(__name__)

# Field holding the actor an operation must be performed by, per role.
_ASSIGNEE_FIELD = {
    ActorRole.CUSTOMER: "customer_id",
    ActorRole.DESIGNER: "designer_id",
    ActorRole.DELIVERY: "delivery_person_id",
}


def _visibility_scope(actor: Actor) -> Dict[str, Any]:
    field = _ASSIGNEE_FIELD.get(actor.role)
    return {field: actor.actor_id} if field else {}


class OrderWorkflowService:
    """Application service for the order lifecycle.

    Receives the repository (and optionally the event bus, tracking
    projector and clock) via constructor injection.
    """

    def __init__(
        self,
        order_repository: IOrderRepository,
        event_bus: Optional[IEventBus] = None,
        projector: Optional[TrackingProjector] = None,
        clock: Callable[[], datetime] = timezone.now,
    ) -> None:
        self._order_repo = order_repository
        self._event_bus = event_bus or default_event_bus
        self._projector = projector or TrackingProjector()
        self._clock = clock

    # ------------------------------------------------------------------
    # Checkout intake
    # ------------------------------------------------------------------

    @transaction.atomic
    def create_order(self, dto: CreateOrderDTO) -> Order:
        """Persist a fully formed order handed over by checkout.

        The order starts ``pending`` with no assignments and an empty
        timeline; ``timestamps.order_placed`` records the placement.  A
        repeated ``idempotency_key`` from the same customer returns the
        original order; keys are scoped per customer.
        """
        log = logger.bind(customer_id=dto.customer_id)

        if dto.idempotency_key:
            existing = self._order_repo.get_by_idempotency_key(
                dto.customer_id, dto.idempotency_key
            )
            if existing:
                log.info(
                    "order.idempotency_hit",
                    order_id=str(existing.id),
                    key=dto.idempotency_key,
                )
                return existing

        now = self._clock()
        order_type = order_type_for(dto.items)
        order = self._order_repo.create(
            {
                "customer_id": dto.customer_id,
                "order_type": order_type,
                "payment_status": dto.payment_status,
                "shipping_address": dto.shipping_address.model_dump(),
                "timestamps": {Milestone.ORDER_PLACED: now.isoformat()},
                "notes": dto.notes or "",
                "idempotency_key": dto.idempotency_key,
                "items": [item.model_dump() for item in dto.items],
            }
        )

        order.add_domain_event(OrderCreated(aggregate_id=order.id, order_type=order_type))
        events = order.domain_events
        self._order_repo.save(order)
        self._publish_after_commit(events)

        log.info("order.created", order_id=str(order.id), order_type=order_type)
        return self._order_repo.get_by_id(str(order.id)) or order

    # ------------------------------------------------------------------
    # Manager
    # ------------------------------------------------------------------

    @transaction.atomic
    def receive_order(self, order_id: UUID, actor: Actor) -> Order:
        """Manager takes a pending order into the workflow."""
        order = self._load(order_id)
        self._require_role(order, actor, ActorRole.MANAGER)
        self._require_transition(order, actor, OrderStatus.ASSIGNED_TO_MANAGER)

        order.manager_id = actor.actor_id
        return self._advance(
            order, actor, OrderStatus.ASSIGNED_TO_MANAGER, note="Order received by manager"
        )

    @transaction.atomic
    def assign_designer(self, order_id: UUID, actor: Actor, designer_id: str) -> Order:
        """Hand a custom order to a designer (``assigned_to_manager`` only)."""
        designer_id = self._require_identifier(designer_id, "designer_id")
        order = self._load(order_id)
        self._require_role(order, actor, ActorRole.MANAGER)
        self._require_transition(order, actor, OrderStatus.ASSIGNED_TO_DESIGNER)
        if order.designer_id:
            raise self._rejected(
                order,
                actor,
                AlreadyAssigned(
                    f"Order {order.id} is already assigned to designer {order.designer_id}."
                ),
            )

        order.designer_id = designer_id
        return self._advance(
            order, actor, OrderStatus.ASSIGNED_TO_DESIGNER, note="Assigned to designer"
        )

    @transaction.atomic
    def assign_delivery(
        self, order_id: UUID, actor: Actor, delivery_person_id: str
    ) -> Order:
        """Hand an order to a delivery person and make it ready for pickup.

        Allowed from ``assigned_to_manager`` for shop orders and from
        ``production_completed`` for custom orders.  Generates the
        delivery OTP if the order has none.
        """
        delivery_person_id = self._require_identifier(
            delivery_person_id, "delivery_person_id"
        )
        order = self._load(order_id)
        self._require_role(order, actor, ActorRole.MANAGER)
        self._require_transition(order, actor, OrderStatus.READY_FOR_PICKUP)
        if order.delivery_person_id:
            raise self._rejected(
                order,
                actor,
                AlreadyAssigned(
                    f"Order {order.id} is already assigned to delivery person "
                    f"{order.delivery_person_id}."
                ),
            )

        order.delivery_person_id = delivery_person_id
        return self._advance(
            order, actor, OrderStatus.READY_FOR_PICKUP, note="Assigned for delivery"
        )

    # ------------------------------------------------------------------
    # Designer
    # ------------------------------------------------------------------

    @transaction.atomic
    def accept_order(self, order_id: UUID, actor: Actor) -> Order:
        order = self._load(order_id)
        self._require_role(order, actor, ActorRole.DESIGNER)
        self._require_transition(order, actor, OrderStatus.DESIGNER_ACCEPTED)
        self._require_assignee(order, actor)
        return self._advance(
            order, actor, OrderStatus.DESIGNER_ACCEPTED, note="Accepted by designer"
        )

    @transaction.atomic
    def start_production(self, order_id: UUID, actor: Actor) -> Order:
        order = self._load(order_id)
        self._require_role(order, actor, ActorRole.DESIGNER)
        self._require_transition(order, actor, OrderStatus.IN_PRODUCTION)
        self._require_assignee(order, actor)

        order.progress_percentage = PROGRESS_MIN
        return self._advance(
            order, actor, OrderStatus.IN_PRODUCTION, note="Production started"
        )

    @transaction.atomic
    def update_progress(
        self, order_id: UUID, actor: Actor, percentage: int, note: str = ""
    ) -> Order:
        """Record production progress.

        Progress never goes down: a value below the stored one is
        rejected with ``TransitionValidationError``.  Repeating the
        current value is allowed and still logs the note.
        """
        if (
            isinstance(percentage, bool)
            or not isinstance(percentage, int)
            or not PROGRESS_MIN <= percentage <= PROGRESS_MAX
        ):
            raise TransitionValidationError(
                f"Progress must be an integer between {PROGRESS_MIN} and {PROGRESS_MAX}."
            )

        order = self._load(order_id)
        self._require_role(order, actor, ActorRole.DESIGNER)
        if order.status != OrderStatus.IN_PRODUCTION:
            raise self._rejected(
                order,
                actor,
                WrongState(
                    f"Progress can only be updated in production; "
                    f"order is {order.status}."
                ),
            )
        self._require_assignee(order, actor)
        if percentage < order.progress_percentage:
            raise self._rejected(
                order,
                actor,
                TransitionValidationError(
                    f"Progress cannot decrease from {order.progress_percentage}% "
                    f"to {percentage}%."
                ),
            )

        order.progress_percentage = percentage
        return self._commit(
            order,
            actor,
            previous=order.status,
            at=self._clock(),
            note=note or f"Progress updated to {percentage}%",
        )

    @transaction.atomic
    def complete_production(self, order_id: UUID, actor: Actor, notes: str = "") -> Order:
        order = self._load(order_id)
        self._require_role(order, actor, ActorRole.DESIGNER)
        self._require_transition(order, actor, OrderStatus.PRODUCTION_COMPLETED)
        self._require_assignee(order, actor)
        if order.progress_percentage != PROGRESS_MAX:
            raise self._rejected(
                order,
                actor,
                WrongState(
                    f"Production is at {order.progress_percentage}%; "
                    f"it must reach {PROGRESS_MAX}% before completion."
                ),
            )
        return self._advance(
            order,
            actor,
            OrderStatus.PRODUCTION_COMPLETED,
            note=notes or "Production completed",
        )

    # ------------------------------------------------------------------
    # Delivery
    # ------------------------------------------------------------------

    @transaction.atomic
    def pick_up(self, order_id: UUID, actor: Actor) -> Order:
        order = self._load(order_id)
        self._require_role(order, actor, ActorRole.DELIVERY)
        self._require_transition(order, actor, OrderStatus.PICKED_UP)
        self._require_assignee(order, actor)
        return self._advance(order, actor, OrderStatus.PICKED_UP, note="Picked up")

    @transaction.atomic
    def mark_in_transit(self, order_id: UUID, actor: Actor, location: str = "") -> Order:
        """Move to (or stay in) ``in_transit``; each call is a location checkpoint."""
        order = self._load(order_id)
        self._require_role(order, actor, ActorRole.DELIVERY)
        self._require_transition(order, actor, OrderStatus.IN_TRANSIT)
        self._require_assignee(order, actor)
        return self._advance(
            order, actor, OrderStatus.IN_TRANSIT, note="In transit", location=location
        )

    @transaction.atomic
    def mark_out_for_delivery(
        self, order_id: UUID, actor: Actor, location: str = ""
    ) -> Order:
        order = self._load(order_id)
        self._require_role(order, actor, ActorRole.DELIVERY)
        self._require_transition(order, actor, OrderStatus.OUT_FOR_DELIVERY)
        self._require_assignee(order, actor)
        return self._advance(
            order,
            actor,
            OrderStatus.OUT_FOR_DELIVERY,
            note="Out for delivery",
            location=location,
        )

    @transaction.atomic
    def deliver(
        self,
        order_id: UUID,
        actor: Actor,
        otp: str,
        received_by: str,
        relationship: str = "",
        notes: str = "",
    ) -> Order:
        """Confirm the hand-off with the customer's OTP.

        A wrong code raises ``OTPMismatch``; the order stays
        ``out_for_delivery`` and the same code can be retried.
        """
        if not (otp or "").strip():
            raise TransitionValidationError("Delivery OTP is required.")
        if not (received_by or "").strip():
            raise TransitionValidationError("Name of the person receiving is required.")

        order = self._load(order_id)
        self._require_role(order, actor, ActorRole.DELIVERY)
        self._require_transition(order, actor, OrderStatus.DELIVERED)
        self._require_assignee(order, actor)
        try:
            verify_delivery_otp(order, otp)
        except OrderWorkflowError as exc:
            raise self._rejected(order, actor, exc) from None

        now = self._clock()
        order.delivery_otp_verified = True
        order.proof_of_delivery = {
            "received_by": received_by.strip(),
            "relationship": relationship,
            "notes": notes,
            "delivered_at": now.isoformat(),
        }
        order.add_domain_event(
            OrderDelivered(aggregate_id=order.id, received_by=received_by.strip())
        )
        return self._advance(
            order,
            actor,
            OrderStatus.DELIVERED,
            note=notes or f"Delivered to {received_by.strip()}",
            at=now,
        )

    # ------------------------------------------------------------------
    # Customer
    # ------------------------------------------------------------------

    @transaction.atomic
    def cancel_order(self, order_id: UUID, actor: Actor, reason: str = "") -> Order:
        """Cancel an order the customer owns.  Only ``pending`` orders qualify.

        A customer who does not own the order gets ``WrongRole`` whatever
        its status.
        """
        order = self._load(order_id)
        self._require_role(order, actor, ActorRole.CUSTOMER)
        self._require_assignee(order, actor)
        self._require_transition(order, actor, OrderStatus.CANCELLED)

        order.add_domain_event(OrderCancelled(aggregate_id=order.id))
        return self._advance(
            order, actor, OrderStatus.CANCELLED, note=reason or "Cancelled by customer"
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_order(self, order_id: str) -> Order:
        """Retrieve a single order by ID.

        Raises:
            OrderNotFound: if the order does not exist.
        """
        order = self._order_repo.get_by_id(str(order_id))
        if not order:
            raise OrderNotFound(f"Order {order_id} not found.")
        return order

    def list_orders_for(
        self, actor: Actor, filters: Optional[Dict[str, Any]] = None
    ) -> Iterable[Order]:
        """Orders visible to *actor*: own orders, own assignments, or all for managers."""
        return self._order_repo.list({**(filters or {}), **_visibility_scope(actor)})

    def order_statistics(self, actor: Actor) -> OrderStatisticsDTO:
        """Per-status counts and revenue over the orders *actor* can list."""
        summary = self._order_repo.status_summary(_visibility_scope(actor))
        by_status = {
            status: summary.get(status, {}).get("count", 0) for status in OrderStatus.values
        }
        revenue = sum(
            (row["amount"] for status, row in summary.items() if status != OrderStatus.CANCELLED),
            Decimal("0.00"),
        )
        return OrderStatisticsDTO(
            total=sum(by_status.values()),
            pending=by_status[OrderStatus.PENDING],
            completed=by_status[OrderStatus.DELIVERED],
            cancelled=by_status[OrderStatus.CANCELLED],
            revenue=revenue,
            by_status=by_status,
        )

    def get_order_for(self, order_id: str, actor: Actor) -> Order:
        """Retrieve an order the actor may see.

        Raises:
            OrderNotFound: the order does not exist.
            WrongRole: the actor is neither a manager nor the order's
                customer / assigned designer / assigned delivery person.
        """
        order = self.get_order(order_id)
        field = _ASSIGNEE_FIELD.get(actor.role)
        if actor.role != ActorRole.MANAGER and (
            field is None or getattr(order, field) != actor.actor_id
        ):
            raise WrongRole(f"Order {order.id} is not visible to this {actor.role}.")
        return order

    def get_tracking(self, order_id: str, actor: Actor) -> OrderTrackingDTO:
        """Tracking view of an order, scoped to the actor's role."""
        order = self.get_order_for(order_id, actor)
        return self._projector.project(order, actor.role)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _load(self, order_id: UUID) -> Order:
        order = self._order_repo.get_for_update(str(order_id))
        if not order:
            raise OrderNotFound(f"Order {order_id} not found.")
        return order

    @staticmethod
    def _require_identifier(value: str, field: str) -> str:
        value = (value or "").strip() if isinstance(value, str) else str(value or "")
        if not value:
            raise TransitionValidationError(f"Field '{field}' is required.")
        return value

    def _require_role(self, order: Order, actor: Actor, role: str) -> None:
        if actor.role != role:
            raise self._rejected(
                order,
                actor,
                WrongRole(f"This operation requires the {role} role, not {actor.role}."),
            )

    def _require_transition(self, order: Order, actor: Actor, target: str) -> None:
        if not can_transition(order.order_type, order.status, target):
            raise self._rejected(
                order,
                actor,
                WrongState(
                    f"A {order.order_type} order cannot move from "
                    f"{order.status} to {target}."
                ),
            )

    def _require_assignee(self, order: Order, actor: Actor) -> None:
        field = _ASSIGNEE_FIELD[actor.role]
        if getattr(order, field) != actor.actor_id:
            raise self._rejected(
                order,
                actor,
                WrongRole(f"Order {order.id} is not assigned to {actor.role} {actor.actor_id}."),
            )

    @staticmethod
    def _rejected(order: Order, actor: Actor, exc: OrderWorkflowError) -> OrderWorkflowError:
        logger.warning(
            "order.transition_rejected",
            order_id=str(order.id),
            status=order.status,
            actor_role=actor.role,
            kind=exc.kind,
            reason=exc.message,
        )
        return exc

    def _advance(
        self,
        order: Order,
        actor: Actor,
        target: str,
        *,
        note: str = "",
        location: str = "",
        at: Optional[datetime] = None,
    ) -> Order:
        now = at or self._clock()
        previous = order.status
        order.status = target
        milestone = MILESTONE_FOR_STATUS.get(target)
        if milestone:
            order.stamp(milestone, now)
        if target in DELIVERY_ELIGIBLE_STATES:
            ensure_delivery_otp(order, now)
        return self._commit(
            order, actor, previous=previous, at=now, note=note, location=location
        )

    def _commit(
        self,
        order: Order,
        actor: Actor,
        *,
        previous: str,
        at: datetime,
        note: str = "",
        location: str = "",
    ) -> Order:
        order.add_domain_event(
            OrderStatusChanged(
                aggregate_id=order.id,
                old_status=previous,
                new_status=order.status,
                occurred_on=at,
            )
        )
        events = order.domain_events
        entry = OrderTimelineEntry(
            status=order.status,
            at=at,
            note=note,
            location=location or "",
            actor_id=actor.actor_id,
            actor_role=actor.role,
        )
        self._order_repo.commit(order, expected_status=previous, entry=entry)
        self._publish_after_commit(events)

        logger.info(
            "order.transitioned",
            order_id=str(order.id),
            old_status=previous,
            new_status=order.status,
            actor_role=actor.role,
            actor_id=actor.actor_id,
        )
        return self._order_repo.get_by_id(str(order.id)) or order

    def _publish_after_commit(self, events: list) -> None:
        # robust=True: a failing handler is logged, the commit stands.
        transaction.on_commit(partial(self._event_bus.publish_all, events), robust=True)
