"""Order state model: pure queries over statuses and line items.

Nothing here touches the database or mutates an order.  The same
functions back the transition engine (``services``) and the tracking
view (``tracking``) so both classify orders identically.
"""

from __future__ import annotations

from typing import Any, Iterable

from modules.orders.constants import (
    TERMINAL_STATES,
    VALID_TRANSITIONS,
    WORKFLOWS,
    OrderType,
)


def is_terminal(status: str) -> bool:
    return status in TERMINAL_STATES


def _reference(item: Any, name: str) -> Any:
    if isinstance(item, dict):
        return item.get(name)
    return getattr(item, name, None)


def is_custom_item(item: Any) -> bool:
    """A custom item references a design and no catalog product."""
    return (
        _reference(item, "design_id") is not None
        and _reference(item, "product_id") is None
    )


def order_type_for(items: Iterable[Any]) -> str:
    """Classify a set of line items (model instances, DTOs or dicts)."""
    if any(is_custom_item(item) for item in items):
        return OrderType.CUSTOM
    return OrderType.SHOP


def line_items(order: Any) -> Iterable[Any]:
    items = order.items
    return items.all() if hasattr(items, "all") else items


def is_custom_order(order: Any) -> bool:
    """Re-derive the order type from the order's items."""
    return order_type_for(line_items(order)) == OrderType.CUSTOM


def current_workflow(order: Any) -> tuple[str, ...]:
    """Ordered milestone statuses for the order's type."""
    if is_custom_order(order):
        return WORKFLOWS[OrderType.CUSTOM]
    return WORKFLOWS[OrderType.SHOP]


def allowed_targets(order_type: str, status: str) -> set[str]:
    return VALID_TRANSITIONS.get(order_type, {}).get(status, set())


def can_transition(order_type: str, current: str, target: str) -> bool:
    return target in allowed_targets(order_type, current)
