"""Django ORM implementation of the Order repository.

Satisfies ``IOrderRepository`` using Django's QuerySet API.  Write
operations run inside ``transaction.atomic()`` so the Order aggregate
(order row, items, history rows and outbox events) is persisted as one
unit.

Concurrency control on transitions uses ``select_for_update()``.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

import structlog
from django.core.exceptions import ValidationError
from django.db import transaction

from modules.core.models import OutboxEvent
from modules.orders.models import Order, OrderItem, OrderStatusHistory
from modules.orders.repositories.interfaces import IOrderRepository
from modules.orders.workflow import HistoryEntry

logger = structlog.get_logger(__name__)

OUTBOX_TOPIC = "orders"


class OrderDjangoRepository(IOrderRepository):
    """Concrete Order repository backed by Django ORM."""

    # ------------------------------------------------------------------
    # Create (aggregate root + children)
    # ------------------------------------------------------------------

    @transaction.atomic
    def create(self, data: Dict[str, Any]) -> Order:
        fields = dict(data)
        items = fields.pop("items", [])

        order = Order(**fields)
        order.save()

        for item_data in items:
            OrderItem(order=order, **item_data).save()

        order.recalculate_totals()
        order.save(update_fields=["subtotal", "total"])

        logger.info("order.persisted", order_id=str(order.id), item_count=len(items))
        return order

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def _base_queryset(self):
        return Order.objects.alive().prefetch_related("items", "status_history")

    def get_by_id(self, id: str) -> Optional[Order]:
        """Retrieve an order with eager-loaded items and history.

        Returns ``None`` for non-existent, soft-deleted or malformed IDs.
        """
        try:
            return self._base_queryset().filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def get_for_update(self, id: str) -> Optional[Order]:
        try:
            return (
                Order.objects.alive()
                .select_for_update()
                .filter(id=id)
                .first()
            )
        except (ValueError, ValidationError):
            return None

    def list(self, filters: Optional[Dict[str, Any]] = None) -> List[Order]:
        queryset = self._base_queryset()
        if filters:
            queryset = queryset.filter(**filters)
        return list(queryset)

    def queryset(self):
        """Unevaluated queryset for filter backends and pagination."""
        return self._base_queryset()

    def list_by_statuses(self, statuses: Iterable[str]) -> List[Order]:
        return list(self._base_queryset().filter(status__in=list(statuses)))

    # ------------------------------------------------------------------
    # Save / Delete (IRepository contract)
    # ------------------------------------------------------------------

    @transaction.atomic
    def save(self, entity: Order) -> Order:
        """Persist an order and flush its pending domain events to the outbox."""
        entity.save()

        events = entity.pull_domain_events()
        for event in events:
            OutboxEvent.record(event, topic=OUTBOX_TOPIC)

        logger.info("order.saved", order_id=str(entity.id), event_count=len(events))
        return entity

    @transaction.atomic
    def delete(self, id: str) -> bool:
        """Soft-delete an order by ID."""
        order = self.get_by_id(id)
        if not order:
            return False
        order.delete()
        logger.info("order.soft_deleted", order_id=str(id))
        return True

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    def add_history(self, order_id: Any, entry: HistoryEntry) -> OrderStatusHistory:
        history = OrderStatusHistory.objects.create(
            order_id=order_id,
            old_status=entry.old_status,
            status=entry.status,
            timestamp=entry.timestamp,
            changed_by=entry.user,
            note=entry.note,
        )
        logger.info(
            "order.history_added",
            order_id=str(order_id),
            old_status=entry.old_status,
            new_status=entry.status,
            changed_by=entry.user,
        )
        return history
