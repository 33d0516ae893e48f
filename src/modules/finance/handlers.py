"""Books revenue when an order's payment is confirmed."""

from __future__ import annotations

import structlog
from django.utils import timezone

from modules.finance.models import (
    SALES_CATEGORY,
    EntryStatus,
    EntryType,
    FinancialEntry,
)
from modules.orders.events import OrderStatusChanged
from modules.orders.models import Order
from shared.domain.bus import IEventHandler

logger = structlog.get_logger(__name__)


class PaymentConfirmedHandler(IEventHandler[OrderStatusChanged]):
    """Creates one ``receita`` entry per paid order.

    Runs inside the transition's transaction, so a failure here rolls the
    status change back with it.
    """

    def handle(self, event: OrderStatusChanged) -> None:
        if not event.payment_confirmed:
            return

        order = Order.objects.filter(id=event.aggregate_id).first()
        if order is None:
            logger.warning("finance.order_missing", order_id=str(event.aggregate_id))
            return

        entry, created = FinancialEntry.objects.get_or_create(
            order_id=order.id,
            defaults={
                "type": EntryType.RECEITA,
                "description": f"Pagamento {order.number} - {order.client_name}",
                "amount": order.total,
                "category": SALES_CATEGORY,
                "date": timezone.localdate(),
                "status": EntryStatus.PAGO,
            },
        )
        if created:
            logger.info(
                "finance.revenue_booked",
                order_id=str(order.id),
                entry_id=str(entry.id),
                amount=str(entry.amount),
            )


payment_confirmed_handler = PaymentConfirmedHandler()
