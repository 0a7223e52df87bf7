"""Order domain constants.

Status vocabulary, the two workflows (shop and custom), the
type-conditioned transition graph, the read-side alias table and the
milestone keys recorded in ``Order.timestamps``.  Status tokens are
persisted and returned verbatim.
"""

from django.db import models


class OrderStatus(models.TextChoices):
    PENDING = "pending"
    ASSIGNED_TO_MANAGER = "assigned_to_manager"
    ASSIGNED_TO_DESIGNER = "assigned_to_designer"
    DESIGNER_ACCEPTED = "designer_accepted"
    IN_PRODUCTION = "in_production"
    PRODUCTION_COMPLETED = "production_completed"
    READY_FOR_PICKUP = "ready_for_pickup"
    PICKED_UP = "picked_up"
    IN_TRANSIT = "in_transit"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class OrderType(models.TextChoices):
    SHOP = "shop"
    CUSTOM = "custom"


class PaymentStatus(models.TextChoices):
    PENDING = "pending"
    PAID = "paid"
    COMPLETED = "completed"
    FAILED = "failed"


SHOP_WORKFLOW: tuple[str, ...] = (
    OrderStatus.PENDING,
    OrderStatus.ASSIGNED_TO_MANAGER,
    OrderStatus.READY_FOR_PICKUP,
    OrderStatus.OUT_FOR_DELIVERY,
    OrderStatus.DELIVERED,
)

CUSTOM_WORKFLOW: tuple[str, ...] = (
    OrderStatus.PENDING,
    OrderStatus.ASSIGNED_TO_MANAGER,
    OrderStatus.ASSIGNED_TO_DESIGNER,
    OrderStatus.DESIGNER_ACCEPTED,
    OrderStatus.IN_PRODUCTION,
    OrderStatus.PRODUCTION_COMPLETED,
    OrderStatus.READY_FOR_PICKUP,
    OrderStatus.OUT_FOR_DELIVERY,
    OrderStatus.DELIVERED,
)

WORKFLOWS: dict[str, tuple[str, ...]] = {
    OrderType.SHOP: SHOP_WORKFLOW,
    OrderType.CUSTOM: CUSTOM_WORKFLOW,
}

# Edges shared by both order types: intake, cancellation and the
# delivery leg (picked_up / in_transit are sub-states of the hand-off).
_COMMON_TRANSITIONS: dict[str, set[str]] = {
    OrderStatus.PENDING: {OrderStatus.ASSIGNED_TO_MANAGER, OrderStatus.CANCELLED},
    OrderStatus.READY_FOR_PICKUP: {OrderStatus.PICKED_UP},
    OrderStatus.PICKED_UP: {OrderStatus.IN_TRANSIT, OrderStatus.OUT_FOR_DELIVERY},
    OrderStatus.IN_TRANSIT: {OrderStatus.IN_TRANSIT, OrderStatus.OUT_FOR_DELIVERY},
    OrderStatus.OUT_FOR_DELIVERY: {OrderStatus.DELIVERED},
    OrderStatus.DELIVERED: set(),
    OrderStatus.CANCELLED: set(),
}

VALID_TRANSITIONS: dict[str, dict[str, set[str]]] = {
    OrderType.SHOP: {
        **_COMMON_TRANSITIONS,
        OrderStatus.ASSIGNED_TO_MANAGER: {OrderStatus.READY_FOR_PICKUP},
    },
    OrderType.CUSTOM: {
        **_COMMON_TRANSITIONS,
        OrderStatus.ASSIGNED_TO_MANAGER: {OrderStatus.ASSIGNED_TO_DESIGNER},
        OrderStatus.ASSIGNED_TO_DESIGNER: {OrderStatus.DESIGNER_ACCEPTED},
        OrderStatus.DESIGNER_ACCEPTED: {OrderStatus.IN_PRODUCTION},
        OrderStatus.IN_PRODUCTION: {OrderStatus.PRODUCTION_COMPLETED},
        OrderStatus.PRODUCTION_COMPLETED: {OrderStatus.READY_FOR_PICKUP},
    },
}

TERMINAL_STATES: frozenset[str] = frozenset(
    {OrderStatus.DELIVERED, OrderStatus.CANCELLED}
)

# Entering any of these generates the delivery OTP if the order has none.
DELIVERY_ELIGIBLE_STATES: frozenset[str] = frozenset(
    {
        OrderStatus.READY_FOR_PICKUP,
        OrderStatus.PICKED_UP,
        OrderStatus.IN_TRANSIT,
        OrderStatus.OUT_FOR_DELIVERY,
    }
)

# Read-side only: statuses that are not workflow steps map to the step
# they are displayed as.  Never written to an order.
STATUS_ALIASES: dict[str, str] = {
    OrderStatus.PICKED_UP: OrderStatus.OUT_FOR_DELIVERY,
    OrderStatus.IN_TRANSIT: OrderStatus.OUT_FOR_DELIVERY,
    "assigned": OrderStatus.ASSIGNED_TO_MANAGER,
    "shipped": OrderStatus.OUT_FOR_DELIVERY,
    "completed": OrderStatus.DELIVERED,
    "ready_for_delivery": OrderStatus.READY_FOR_PICKUP,
}


class Milestone:
    ORDER_PLACED = "order_placed"
    MANAGER_ASSIGNED = "manager_assigned"
    DESIGNER_ASSIGNED = "designer_assigned"
    DESIGNER_ACCEPTED = "designer_accepted"
    PRODUCTION_STARTED = "production_started"
    PRODUCTION_COMPLETED = "production_completed"
    DELIVERY_ASSIGNED = "delivery_assigned"
    PICKED_UP = "picked_up"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


# Milestone stamped when an order enters the status.
MILESTONE_FOR_STATUS: dict[str, str] = {
    OrderStatus.PENDING: Milestone.ORDER_PLACED,
    OrderStatus.ASSIGNED_TO_MANAGER: Milestone.MANAGER_ASSIGNED,
    OrderStatus.ASSIGNED_TO_DESIGNER: Milestone.DESIGNER_ASSIGNED,
    OrderStatus.DESIGNER_ACCEPTED: Milestone.DESIGNER_ACCEPTED,
    OrderStatus.IN_PRODUCTION: Milestone.PRODUCTION_STARTED,
    OrderStatus.PRODUCTION_COMPLETED: Milestone.PRODUCTION_COMPLETED,
    OrderStatus.READY_FOR_PICKUP: Milestone.DELIVERY_ASSIGNED,
    OrderStatus.PICKED_UP: Milestone.PICKED_UP,
    OrderStatus.OUT_FOR_DELIVERY: Milestone.OUT_FOR_DELIVERY,
    OrderStatus.DELIVERED: Milestone.DELIVERED,
    OrderStatus.CANCELLED: Milestone.CANCELLED,
}

# Milestones the tracking view prefers over the timeline for a step's time.
STEP_TIMESTAMP_MILESTONES: dict[str, str] = {
    OrderStatus.PENDING: Milestone.ORDER_PLACED,
    OrderStatus.ASSIGNED_TO_MANAGER: Milestone.MANAGER_ASSIGNED,
    OrderStatus.ASSIGNED_TO_DESIGNER: Milestone.DESIGNER_ASSIGNED,
    OrderStatus.DESIGNER_ACCEPTED: Milestone.DESIGNER_ACCEPTED,
    OrderStatus.PRODUCTION_COMPLETED: Milestone.PRODUCTION_COMPLETED,
    OrderStatus.READY_FOR_PICKUP: Milestone.DELIVERY_ASSIGNED,
}

PROGRESS_MIN = 0
PROGRESS_MAX = 100

OTP_LENGTH = 4
OTP_MIN = 1000
OTP_MAX = 9999

ORDER_NUMBER_MAX_RETRIES = 5
