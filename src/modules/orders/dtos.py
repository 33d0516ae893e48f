"""Order DTOs for the Service Layer.

Framework-agnostic data transfer objects using Pydantic v2.
These are the contracts between the API layer (DRF Serializers / Views)
and the Service layer.  DTOs are immutable (``frozen=True``).

- ``CreateOrderItemDTO`` / ``CreateOrderDTO``: quote creation input.
- ``TransitionRequestDTO``: a role action on an existing order.
- ``PipelineStepDTO`` / ``PipelineDTO``: progress-pipeline view.
- ``HistoryEntryDTO``: one row of the status-history timeline.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

from modules.orders.constants import DiscountType, OrderType

# ---------------------------------------------------------------------------
# Input DTOs
# ---------------------------------------------------------------------------


class CreateOrderItemDTO(BaseModel):
    """Immutable DTO for a single quote line."""

    model_config = ConfigDict(frozen=True)

    product: str = Field(min_length=1, max_length=255)
    description: str = ""
    quantity: int
    unit_price: Decimal = Field(ge=0)
    discount_type: DiscountType = DiscountType.PERCENT
    discount: Decimal = Field(default=Decimal("0.00"), ge=0)

    @field_validator("quantity")
    @classmethod
    def quantity_must_be_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Quantity must be at least 1.")
        return v

    @field_validator("discount")
    @classmethod
    def percent_discount_within_bounds(cls, v: Decimal, info: ValidationInfo) -> Decimal:
        if info.data.get("discount_type") == DiscountType.PERCENT and v > 100:
            raise ValueError("Percentage discount cannot exceed 100.")
        return v


class CreateOrderDTO(BaseModel):
    """Immutable DTO for quote creation.

    ``subtotal`` and ``total`` are never accepted from the caller: they are
    derived from ``items`` and ``taxes`` by the service.
    """

    model_config = ConfigDict(frozen=True)

    client_id: str = Field(min_length=1, max_length=64)
    client_name: str = Field(min_length=1, max_length=255)
    items: List[CreateOrderItemDTO]
    taxes: Decimal = Field(default=Decimal("0.00"), ge=0)
    notes: str = ""
    observation: str = ""
    payment_method: str = ""
    installments: Optional[int] = Field(default=None, ge=1)
    order_type: Optional[OrderType] = None
    delivery_date: Optional[date] = None

    @field_validator("items")
    @classmethod
    def items_must_not_be_empty(
        cls, v: List[CreateOrderItemDTO]
    ) -> List[CreateOrderItemDTO]:
        if not v:
            raise ValueError("Order must have at least one item.")
        return v


class TransitionRequestDTO(BaseModel):
    """Immutable DTO for a role action (``POST /orders/{id}/transition/``)."""

    model_config = ConfigDict(frozen=True)

    action: str = Field(min_length=1)
    note: str = ""
    rejection_reason: str = ""
    receipt_url: str = ""

    @field_validator("rejection_reason", "note", "receipt_url")
    @classmethod
    def strip_whitespace(cls, v: str) -> str:
        return v.strip()


# ---------------------------------------------------------------------------
# Output DTOs
# ---------------------------------------------------------------------------


class PipelineStepDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: str
    label: str
    state: Literal["done", "active", "pending"]


class RejectionBannerDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: str
    label: str
    reason: str


class PipelineDTO(BaseModel):
    """Progress of an order along ``STATUS_FLOW``.

    Exactly one of ``steps`` (non-empty) or ``rejection`` is populated.
    """

    model_config = ConfigDict(frozen=True)

    order_id: str
    status: str
    current_index: int
    steps: List[PipelineStepDTO] = Field(default_factory=list)
    rejection: Optional[RejectionBannerDTO] = None


class HistoryEntryDTO(BaseModel):
    """One entry of the status-history timeline (oldest first)."""

    model_config = ConfigDict(frozen=True)

    status: str
    label: str
    timestamp: datetime
    user: str
    note: str
    is_current: bool
