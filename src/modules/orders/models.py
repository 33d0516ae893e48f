"""Order, OrderItem, and OrderStatusHistory models.

Business rules implemented:
- ``statusHistory`` is append-only: ``OrderStatusHistory`` rows are never
  edited or deleted, and the newest row always carries ``order.status``.
- ``total`` is always ``subtotal + taxes``; ``subtotal`` is re-derived from
  the items (``recalculate_totals``).
- ``OrderItem.total`` is ``quantity * unit_price`` minus the discount
  (percentage or absolute), recalculated on save.
- Client and seller are denormalized (id + display name): the client
  registry lives outside this service.
- Order number is a human-readable sequence (``PED-000042``).
- Soft delete via ``deleted_at`` (inherited from SoftDeleteModel).
"""

from __future__ import annotations

import re
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

import structlog
from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone

from modules.core.models import BaseModel, SoftDeleteModel
from modules.orders.constants import (
    ORDER_NUMBER_MAX_RETRIES,
    REJECTION_STATES,
    STATUS_COLORS,
    SYSTEM_USER,
    TERMINAL_STATES,
    DiscountType,
    OrderStatus,
    OrderType,
    PaymentStatus,
)
from shared.domain.events import DomainEventMixin

logger = structlog.get_logger(__name__)

CENTS = Decimal("0.01")


class Order(DomainEventMixin, SoftDeleteModel):
    """Order aggregate root: a sales quote moving through the pipeline.

    ``number`` is generated on first save.  The UUIDv7 ``id`` is used for all
    internal references, API lookups and the QR-code release link.
    """

    number: models.CharField = models.CharField(
        max_length=20, unique=True, editable=False
    )

    # Denormalized relations
    client_id: models.CharField = models.CharField(max_length=64)
    client_name: models.CharField = models.CharField(max_length=255)
    seller_id: models.CharField = models.CharField(max_length=64, blank=True)
    seller_name: models.CharField = models.CharField(max_length=255, blank=True)

    # Commercial
    subtotal: models.DecimalField = models.DecimalField(
        max_digits=12, decimal_places=2, default=Decimal("0.00")
    )
    taxes: models.DecimalField = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal("0.00"),
        validators=[MinValueValidator(Decimal("0.00"))],
    )
    total: models.DecimalField = models.DecimalField(
        max_digits=12, decimal_places=2, default=Decimal("0.00")
    )
    notes: models.TextField = models.TextField(blank=True, default="")
    observation: models.TextField = models.TextField(blank=True, default="")
    payment_method: models.CharField = models.CharField(
        max_length=50, blank=True, default=""
    )
    installments: models.PositiveSmallIntegerField = models.PositiveSmallIntegerField(
        null=True, blank=True
    )
    order_type: models.CharField = models.CharField(
        max_length=20, choices=OrderType.choices, blank=True, default=""
    )
    delivery_date: models.DateField = models.DateField(null=True, blank=True)

    # Workflow
    status: models.CharField = models.CharField(
        max_length=30,
        choices=OrderStatus.choices,
        default=OrderStatus.RASCUNHO,
    )

    # Side-channel fields populated by specific transitions
    payment_status: models.CharField = models.CharField(
        max_length=20, choices=PaymentStatus.choices, blank=True, default=""
    )
    rejection_reason: models.TextField = models.TextField(blank=True, default="")
    receipt_url: models.URLField = models.URLField(
        max_length=500, blank=True, default=""
    )
    production_started_at: models.DateTimeField = models.DateTimeField(
        null=True, blank=True
    )
    production_finished_at: models.DateTimeField = models.DateTimeField(
        null=True, blank=True
    )
    released_at: models.DateTimeField = models.DateTimeField(null=True, blank=True)
    released_by: models.CharField = models.CharField(
        max_length=255, blank=True, default=""
    )
    qr_code: models.URLField = models.URLField(max_length=500, blank=True, default="")

    class Meta:
        db_table = "orders"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status"], name="orders_status_idx"),
            models.Index(fields=["-created_at"], name="orders_created_idx"),
            models.Index(fields=["seller_id"], name="orders_seller_idx"),
        ]

    # ------------------------------------------------------------------
    # Workflow helpers
    # ------------------------------------------------------------------

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATES

    @property
    def is_rejected(self) -> bool:
        return self.status in REJECTION_STATES

    @property
    def status_color(self) -> str:
        return STATUS_COLORS.get(self.status, "muted")

    # ------------------------------------------------------------------
    # Totals
    # ------------------------------------------------------------------

    def recalculate_totals(self) -> None:
        """Re-derive ``subtotal`` from items and ``total = subtotal + taxes``."""
        subtotal = sum((item.total for item in self.items.all()), Decimal("0.00"))
        self.subtotal = subtotal.quantize(CENTS, rounding=ROUND_HALF_UP)
        self.total = (self.subtotal + (self.taxes or Decimal("0.00"))).quantize(
            CENTS, rounding=ROUND_HALF_UP
        )

    # ------------------------------------------------------------------
    # Order number generation
    # ------------------------------------------------------------------

    @classmethod
    def generate_number(cls) -> str:
        """Next number in the ``<PREFIX>-NNNNNN`` sequence."""
        prefix = settings.ORDER_NUMBER_PREFIX
        last = (
            cls.objects.filter(number__startswith=f"{prefix}-")
            .order_by("-number")
            .values_list("number", flat=True)
            .first()
        )
        sequence = 0
        if last:
            match = re.search(r"(\d+)$", last)
            sequence = int(match.group(1)) if match else 0
        return f"{prefix}-{sequence + 1:06d}"

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def save(self, *args: Any, **kwargs: Any) -> None:
        if not self.number:
            for _attempt in range(ORDER_NUMBER_MAX_RETRIES):
                candidate = self.generate_number()
                if not Order.objects.filter(number=candidate).exists():
                    self.number = candidate
                    break
            else:
                raise RuntimeError(
                    f"Failed to generate unique order number after "
                    f"{ORDER_NUMBER_MAX_RETRIES} attempts"
                )
        super().save(*args, **kwargs)

    def __str__(self) -> str:
        return f"{self.number} ({self.status})"


class OrderItem(BaseModel):
    """Quote line item.

    ``product`` is free text as typed by the seller.  ``total`` is always
    ``quantity * unit_price - discount`` (never negative), recalculated on
    every save.
    """

    order: models.ForeignKey = models.ForeignKey(
        "orders.Order",
        on_delete=models.CASCADE,
        related_name="items",
    )
    product: models.CharField = models.CharField(max_length=255)
    description: models.TextField = models.TextField(blank=True, default="")
    quantity: models.PositiveIntegerField = models.PositiveIntegerField(
        default=1,
        validators=[MinValueValidator(1)],
    )
    unit_price: models.DecimalField = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0.00"))],
    )
    discount: models.DecimalField = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal("0.00"),
        validators=[MinValueValidator(Decimal("0.00"))],
    )
    discount_type: models.CharField = models.CharField(
        max_length=10,
        choices=DiscountType.choices,
        default=DiscountType.PERCENT,
    )
    total: models.DecimalField = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        editable=False,
    )

    class Meta:
        db_table = "order_items"
        ordering = ["created_at", "id"]
        constraints = [
            models.CheckConstraint(
                check=models.Q(quantity__gte=1),
                name="order_items_quantity_positive",
            ),
        ]

    def clean(self) -> None:
        super().clean()
        if self.discount_type == DiscountType.PERCENT and self.discount > 100:
            raise ValidationError({"discount": "Percentage discount cannot exceed 100."})

    @staticmethod
    def compute_total(
        quantity: int,
        unit_price: Decimal,
        discount: Decimal = Decimal("0.00"),
        discount_type: str = DiscountType.PERCENT,
    ) -> Decimal:
        gross = Decimal(quantity) * Decimal(unit_price)
        if discount_type == DiscountType.PERCENT:
            off = gross * Decimal(discount) / Decimal(100)
        else:
            off = Decimal(discount)
        return max(gross - off, Decimal("0.00")).quantize(CENTS, rounding=ROUND_HALF_UP)

    def save(self, *args: Any, **kwargs: Any) -> None:
        self.total = self.compute_total(
            self.quantity, self.unit_price, self.discount, self.discount_type
        )
        super().save(*args, **kwargs)

    def __str__(self) -> str:
        return f"{self.product} x{self.quantity} (R${self.total})"


class OrderStatusHistory(BaseModel):
    """Append-only audit trail for order status changes.

    ``changed_by`` is the acting user's display name (``"Sistema"`` for
    system-initiated changes, ``"QR Code Scan"`` for public releases).
    Rows are ordered by ``sequence`` (insertion order), never by
    ``timestamp``: a backdated entry still lands at the end of the timeline.
    """

    order: models.ForeignKey = models.ForeignKey(
        "orders.Order",
        on_delete=models.CASCADE,
        related_name="status_history",
    )
    old_status: models.CharField = models.CharField(  # noqa: DJ01
        max_length=30,
        choices=OrderStatus.choices,
        null=True,
        blank=True,
    )
    status: models.CharField = models.CharField(
        max_length=30,
        choices=OrderStatus.choices,
    )
    timestamp: models.DateTimeField = models.DateTimeField(default=timezone.now)
    changed_by: models.CharField = models.CharField(
        max_length=255, default=SYSTEM_USER
    )
    note: models.TextField = models.TextField(blank=True, default="")
    sequence: models.PositiveIntegerField = models.PositiveIntegerField(editable=False)

    class Meta:
        db_table = "order_status_history"
        ordering = ["sequence"]
        constraints = [
            models.UniqueConstraint(
                fields=["order", "sequence"],
                name="osh_order_sequence_uniq",
            ),
        ]

    def save(self, *args: Any, **kwargs: Any) -> None:
        if not self._state.adding:
            raise ValidationError("Status history entries are immutable.")
        if self.sequence is None:
            last = OrderStatusHistory.objects.filter(order_id=self.order_id).aggregate(
                last=models.Max("sequence")
            )["last"]
            self.sequence = (last or 0) + 1
        super().save(*args, **kwargs)

    def __str__(self) -> str:
        return f"{self.order_id}: {self.old_status} -> {self.status} by {self.changed_by}"
