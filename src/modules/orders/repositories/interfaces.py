"""Order repository interface.

Extends ``IRepository[Order]`` with what the Order aggregate needs:
atomic creation with items, row locking for transitions, and the
append-only status history.

The Service Layer depends exclusively on this contract (DIP).
"""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from modules.orders.models import Order, OrderStatusHistory
    from modules.orders.workflow import HistoryEntry


class IOrderRepository(IRepository["Order"]):
    """Repository contract for the Order aggregate root.

    The aggregate includes OrderItem children and OrderStatusHistory
    records.  Mutations must be atomic.
    """

    @abstractmethod
    def create(self, data: Dict[str, Any]) -> Order:
        """Create an order with its items atomically.

        ``data`` holds the order fields plus ``items`` (list of dicts with
        ``product``, ``quantity``, ``unit_price`` and optional
        ``description``, ``discount``, ``discount_type``).  Totals are
        derived from the persisted items.
        """

    @abstractmethod
    def get_by_id(self, id: str) -> Optional[Order]:
        """Retrieve an order with prefetched items and status history."""

    @abstractmethod
    def get_for_update(self, id: str) -> Optional[Order]:
        """Retrieve an order holding a row-level lock."""

    @abstractmethod
    def list(self, filters: Optional[Dict[str, Any]] = None) -> List[Order]:
        """List non-deleted orders with optional filters."""

    @abstractmethod
    def list_by_statuses(self, statuses: Iterable[str]) -> List[Order]:
        """List non-deleted orders whose status is one of ``statuses``."""

    @abstractmethod
    def add_history(self, order_id: Any, entry: HistoryEntry) -> OrderStatusHistory:
        """Append an entry to the order's audit trail."""
