"""Read-only views of an order's workflow position.

Pure functions: they never touch the database beyond reading the order's
(prefetched) history and never mutate anything.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterable, List

from modules.orders.constants import (
    PIPELINE_STEP_LABELS,
    REJECTION_STATES,
    STATUS_FLOW,
    OrderStatus,
)
from modules.orders.dtos import (
    HistoryEntryDTO,
    PipelineDTO,
    PipelineStepDTO,
    RejectionBannerDTO,
)

if TYPE_CHECKING:
    from modules.orders.models import Order, OrderStatusHistory


def status_label(status: str) -> str:
    try:
        return OrderStatus(status).label
    except ValueError:
        return status


def pipeline_index(status: str) -> int:
    """Position of ``status`` in ``STATUS_FLOW``; ``-1`` when not on it."""
    try:
        return STATUS_FLOW.index(status)
    except ValueError:
        return -1


def render_pipeline(order: Order) -> PipelineDTO:
    """Render the order's progress along the nominal flow.

    Steps before the current index are ``done``, the current one ``active``,
    the rest ``pending``.  Rejected orders get a banner instead of steps.
    A status off the flow yields index ``-1`` and every step ``pending``.
    """
    current = pipeline_index(order.status)

    if order.status in REJECTION_STATES:
        return PipelineDTO(
            order_id=str(order.id),
            status=order.status,
            current_index=current,
            rejection=RejectionBannerDTO(
                status=order.status,
                label=status_label(order.status),
                reason=order.rejection_reason or "",
            ),
        )

    steps = []
    for index, step in enumerate(STATUS_FLOW):
        if index < current:
            state = "done"
        elif index == current:
            state = "active"
        else:
            state = "pending"
        steps.append(
            PipelineStepDTO(status=step, label=PIPELINE_STEP_LABELS[step], state=state)
        )

    return PipelineDTO(
        order_id=str(order.id),
        status=order.status,
        current_index=current,
        steps=steps,
    )


def render_history(
    order: Order, entries: Iterable[OrderStatusHistory] | None = None
) -> List[HistoryEntryDTO]:
    """Render the status history as a timeline, oldest first.

    The last entry is flagged ``is_current``.
    """
    rows = list(entries if entries is not None else order.status_history.all())
    last = len(rows) - 1
    return [
        HistoryEntryDTO(
            status=row.status,
            label=status_label(row.status),
            timestamp=row.timestamp,
            user=row.changed_by,
            note=row.note,
            is_current=index == last,
        )
        for index, row in enumerate(rows)
    ]
