"""Financial ledger entries.

Only the revenue side fed by the order pipeline lives here: when finance
confirms payment, one ``receita`` entry is booked for the order total.
"""

from __future__ import annotations

from decimal import Decimal

from django.db import models
from django.utils import timezone

from modules.core.models import BaseModel


class EntryType(models.TextChoices):
    RECEITA = "receita", "Receita"
    DESPESA = "despesa", "Despesa"


class EntryStatus(models.TextChoices):
    PAGO = "pago", "Pago"
    PENDENTE = "pendente", "Pendente"


SALES_CATEGORY = "Vendas"


class FinancialEntry(BaseModel):
    """A single ledger line.

    ``order_id`` is set only for entries booked automatically from an
    order; it is unique so an order is never booked twice.
    """

    type: models.CharField = models.CharField(max_length=10, choices=EntryType.choices)
    description: models.CharField = models.CharField(max_length=255)
    amount: models.DecimalField = models.DecimalField(
        max_digits=12, decimal_places=2, default=Decimal("0.00")
    )
    category: models.CharField = models.CharField(max_length=100, blank=True, default="")
    date: models.DateField = models.DateField(default=timezone.localdate)
    status: models.CharField = models.CharField(
        max_length=10, choices=EntryStatus.choices, default=EntryStatus.PENDENTE
    )
    order_id: models.UUIDField = models.UUIDField(null=True, blank=True, unique=True)

    class Meta:
        db_table = "financial_entries"
        ordering = ["-date", "-created_at"]
        verbose_name_plural = "financial entries"

    def __str__(self) -> str:
        return f"{self.get_type_display()} {self.description} (R${self.amount})"
