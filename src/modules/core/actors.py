"""Acting-user resolution for role-gated operations.

A user's pipeline role is the Django auth ``Group`` whose name matches one
of the ``UserRole`` values.  The resolved ``Actor`` is passed explicitly
into the service layer: there is no ambient "current user".
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from django.db import models

SYSTEM_ACTOR_NAME = "Sistema"


class UserRole(models.TextChoices):
    VENDEDOR = "vendedor", "Vendedor"
    FINANCEIRO = "financeiro", "Financeiro"
    GESTOR = "gestor", "Gestor"
    PRODUCAO = "producao", "Produção"


@dataclass(frozen=True)
class Actor:
    """Who is performing an action: display name + pipeline role."""

    id: str
    name: str
    role: Optional[str] = None

    @property
    def is_anonymous(self) -> bool:
        return not self.id

    @classmethod
    def system(cls) -> Actor:
        return cls(id="", name=SYSTEM_ACTOR_NAME, role=None)


def resolve_actor(user: Any) -> Actor:
    """Build an ``Actor`` from a Django (or anonymous) user."""
    if user is None or not getattr(user, "is_authenticated", False):
        return Actor.system()

    full_name = user.get_full_name() if hasattr(user, "get_full_name") else ""
    name = full_name or user.get_username()

    role_values = set(UserRole.values)
    role = (
        user.groups.filter(name__in=role_values)
        .order_by("name")
        .values_list("name", flat=True)
        .first()
    )
    return Actor(id=str(user.pk), name=name, role=role)
