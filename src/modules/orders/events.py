"""Domain events for the Orders bounded context."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from shared.domain.events import DomainEvent


@dataclass(frozen=True)
class OrderCreated(DomainEvent):
    """Raised when a seller creates a quote (status ``rascunho``)."""

    number: str = ""
    seller_name: str = ""


@dataclass(frozen=True)
class OrderStatusChanged(DomainEvent):
    """Raised on every pipeline transition.

    ``payment_confirmed`` is set when the transition marked the order
    ``payment_status = pago``: finance books the revenue on it.
    """

    old_status: Optional[str] = None
    new_status: str = ""
    changed_by: str = ""
    payment_confirmed: bool = False
