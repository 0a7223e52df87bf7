"""Order repository interface.

The service layer depends exclusively on this contract.  The one
invariant every implementation must honour is that ``commit`` is a
compare-and-swap: it writes the whole aggregate only if the stored
order is still in the status and version the caller loaded.
"""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, Any, Dict, Iterable, Optional

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from modules.orders.models import Order, OrderTimelineEntry


class IOrderRepository(IRepository["Order"]):
    """Repository contract for the Order aggregate root.

    The aggregate is the order row, its items and its timeline.
    """

    @abstractmethod
    def create(self, data: Dict[str, Any]) -> Order:
        """Create a ``pending`` order with its items atomically.

        ``data`` must include ``customer_id``, ``order_type``,
        ``shipping_address`` and ``items`` (dicts with ``product_id``,
        ``design_id``, ``quantity``, ``unit_price`` and optional
        ``name``/``size``/``color``).
        """

    @abstractmethod
    def get_by_id(self, id: str) -> Optional[Order]:
        """Retrieve an order with prefetched items and timeline."""

    @abstractmethod
    def get_for_update(self, id: str) -> Optional[Order]:
        """Retrieve an order and lock it for the current transaction."""

    @abstractmethod
    def list(self, filters: Optional[Dict[str, Any]] = None) -> Iterable[Order]:
        """List orders with optional filters (lazily where the backend allows)."""

    @abstractmethod
    def commit(
        self,
        order: Order,
        expected_status: str,
        entry: OrderTimelineEntry,
    ) -> Order:
        """Persist a transition: order fields, timeline entry and events.

        Raises:
            ConcurrencyConflict: the stored order no longer has
                ``expected_status`` and ``order.version``.
        """

    @abstractmethod
    def get_by_idempotency_key(self, customer_id: str, key: str) -> Optional[Order]:
        """Retrieve the customer's order placed with this checkout idempotency key."""

    @abstractmethod
    def status_summary(
        self, filters: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Dict[str, Any]]:
        """Order count and summed ``total_amount`` per status.

        Statuses with no matching orders are absent from the result.
        """
