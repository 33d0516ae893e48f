"""Domain event primitives shared by every bounded context.

Events are immutable dataclasses.  Aggregates collect them in memory while a
use case runs; the repository drains them into the outbox when it persists
the aggregate.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List
from uuid import UUID, uuid4


@dataclass(frozen=True)
class DomainEvent:
    """Base domain event."""

    aggregate_id: UUID
    event_id: UUID = field(default_factory=uuid4)
    occurred_on: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    event_name: str = field(init=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "event_name", self.__class__.__name__)

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


class DomainEventMixin:
    """Mixin for aggregate roots that collect pending domain events."""

    _domain_events: List[DomainEvent]

    def _pending_events(self) -> List[DomainEvent]:
        if not hasattr(self, "_domain_events"):
            self._domain_events = []
        return self._domain_events

    def add_domain_event(self, event: DomainEvent) -> None:
        self._pending_events().append(event)

    def clear_domain_events(self) -> None:
        self._pending_events().clear()

    def pull_domain_events(self) -> List[DomainEvent]:
        """Return the pending events and forget them."""
        events = list(self._pending_events())
        self.clear_domain_events()
        return events

    @property
    def domain_events(self) -> List[DomainEvent]:
        return list(self._pending_events())
