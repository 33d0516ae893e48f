"""Order pipeline state machine.

Two pieces:

- ``apply_transition``: the transition function.  It appends nothing to
  the database and validates nothing about legality: it sets the new
  status, stamps ``updated_at``, merges the side-channel fields, and returns
  the history entry the caller must append.
- ``TRANSITION_RULES``: the single declarative table of who may move an
  order from which status to which.  Both the UI (``available_actions``)
  and the server-side authorization in ``OrderService.perform_action``
  consult it.

Manager bypass: the two financial shortcuts straight to production are
flagged ``bypasses_manager`` and only exist while
``settings.ORDER_ALLOW_MANAGER_BYPASS`` is on.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any, List, Mapping, Optional

from django.conf import settings
from django.utils import timezone

from modules.core.actors import UserRole
from modules.orders.constants import (
    SYSTEM_USER,
    TRANSITION_FIELDS,
    OrderStatus,
    PaymentStatus,
)
from modules.orders.exceptions import InvalidTransitionPayload, UnknownOrderAction

if TYPE_CHECKING:
    from modules.orders.models import Order


# ---------------------------------------------------------------------------
# Transition function
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class HistoryEntry:
    """A status-history record produced by ``apply_transition``."""

    status: str
    timestamp: datetime
    user: str
    note: str = ""
    old_status: Optional[str] = None


def apply_transition(
    order: Order,
    new_status: str,
    extra_fields: Optional[Mapping[str, Any]] = None,
    acting_user_name: Optional[str] = None,
    note: Optional[str] = None,
    now: Optional[datetime] = None,
) -> HistoryEntry:
    """Move ``order`` to ``new_status`` in memory and return the history entry.

    ``extra_fields`` is shallow-merged onto the order after the status
    change; only side-channel fields (``TRANSITION_FIELDS``) may be patched.
    No check is made that ``order.status -> new_status`` is a legal edge.
    """
    if new_status not in OrderStatus.values:
        raise InvalidTransitionPayload(f"Unknown status '{new_status}'.")

    extra = dict(extra_fields or {})
    unknown = set(extra) - TRANSITION_FIELDS
    if unknown:
        raise InvalidTransitionPayload(
            f"Fields not patchable by a transition: {', '.join(sorted(unknown))}."
        )

    now = now or timezone.now()
    entry = HistoryEntry(
        status=new_status,
        timestamp=now,
        user=acting_user_name or SYSTEM_USER,
        note=note or "",
        old_status=order.status,
    )

    order.status = new_status
    order.touch(now)
    for field, value in extra.items():
        setattr(order, field, value)
    return entry


# ---------------------------------------------------------------------------
# Role transition table
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TransitionRule:
    """One edge of the pipeline: ``role`` may move ``from_status -> to_status``.

    ``role=None`` means anyone, including unauthenticated viewers (QR scan).
    """

    action: str
    role: Optional[str]
    from_status: str
    to_status: str
    label: str
    requires_reason: bool = False
    payment_status: Optional[str] = None
    bypasses_manager: bool = False


TRANSITION_RULES: tuple[TransitionRule, ...] = (
    TransitionRule(
        action="submit_to_financial",
        role=UserRole.VENDEDOR,
        from_status=OrderStatus.RASCUNHO,
        to_status=OrderStatus.AGUARDANDO_FINANCEIRO,
        label="Enviar ao Financeiro",
    ),
    TransitionRule(
        action="financial_approve",
        role=UserRole.FINANCEIRO,
        from_status=OrderStatus.AGUARDANDO_FINANCEIRO,
        to_status=OrderStatus.APROVADO_FINANCEIRO,
        label="Aprovar",
        payment_status=PaymentStatus.PAGO,
    ),
    TransitionRule(
        action="financial_reject",
        role=UserRole.FINANCEIRO,
        from_status=OrderStatus.AGUARDANDO_FINANCEIRO,
        to_status=OrderStatus.REJEITADO_FINANCEIRO,
        label="Rejeitar",
        requires_reason=True,
    ),
    TransitionRule(
        action="financial_approve_to_production",
        role=UserRole.FINANCEIRO,
        from_status=OrderStatus.AGUARDANDO_FINANCEIRO,
        to_status=OrderStatus.AGUARDANDO_PRODUCAO,
        label="Aprovar e Enviar à Produção",
        payment_status=PaymentStatus.PAGO,
        bypasses_manager=True,
    ),
    TransitionRule(
        action="send_to_manager",
        role=UserRole.FINANCEIRO,
        from_status=OrderStatus.APROVADO_FINANCEIRO,
        to_status=OrderStatus.AGUARDANDO_GESTOR,
        label="Enviar ao Gestor",
    ),
    TransitionRule(
        action="financial_send_to_production",
        role=UserRole.FINANCEIRO,
        from_status=OrderStatus.APROVADO_FINANCEIRO,
        to_status=OrderStatus.AGUARDANDO_PRODUCAO,
        label="Enviar à Produção",
        bypasses_manager=True,
    ),
    TransitionRule(
        action="manager_approve",
        role=UserRole.GESTOR,
        from_status=OrderStatus.AGUARDANDO_GESTOR,
        to_status=OrderStatus.APROVADO_GESTOR,
        label="Aprovar",
    ),
    TransitionRule(
        action="manager_reject",
        role=UserRole.GESTOR,
        from_status=OrderStatus.AGUARDANDO_GESTOR,
        to_status=OrderStatus.REJEITADO_GESTOR,
        label="Rejeitar",
        requires_reason=True,
    ),
    TransitionRule(
        action="manager_send_to_production",
        role=UserRole.GESTOR,
        from_status=OrderStatus.APROVADO_GESTOR,
        to_status=OrderStatus.AGUARDANDO_PRODUCAO,
        label="Enviar à Produção",
    ),
    TransitionRule(
        action="start_production",
        role=UserRole.PRODUCAO,
        from_status=OrderStatus.AGUARDANDO_PRODUCAO,
        to_status=OrderStatus.EM_PRODUCAO,
        label="Iniciar Produção",
    ),
    TransitionRule(
        action="finish_production",
        role=UserRole.PRODUCAO,
        from_status=OrderStatus.EM_PRODUCAO,
        to_status=OrderStatus.PRODUCAO_FINALIZADA,
        label="Finalizar Produção",
    ),
    TransitionRule(
        action="release_product",
        role=None,
        from_status=OrderStatus.PRODUCAO_FINALIZADA,
        to_status=OrderStatus.PRODUTO_LIBERADO,
        label="Liberar Produto",
    ),
)


def active_rules() -> List[TransitionRule]:
    """Rules in force under the current settings."""
    allow_bypass = getattr(settings, "ORDER_ALLOW_MANAGER_BYPASS", True)
    return [
        rule
        for rule in TRANSITION_RULES
        if allow_bypass or not rule.bypasses_manager
    ]


def get_rule(action: str) -> TransitionRule:
    for rule in active_rules():
        if rule.action == action:
            return rule
    raise UnknownOrderAction(f"Unknown order action '{action}'.")


def role_matches(rule: TransitionRule, role: Optional[str]) -> bool:
    return rule.role is None or rule.role == role


def rules_for(role: Optional[str], status: str) -> List[TransitionRule]:
    """Rules ``role`` can fire on an order currently in ``status``."""
    return [
        rule
        for rule in active_rules()
        if rule.from_status == status and role_matches(rule, role)
    ]


def available_actions(role: Optional[str], status: str) -> List[str]:
    return [rule.action for rule in rules_for(role, status)]


def reachable_statuses(role: Optional[str], status: str) -> set[str]:
    return {rule.to_status for rule in rules_for(role, status)}


def actionable_statuses(role: Optional[str]) -> set[str]:
    """Statuses in which ``role`` has at least one role-specific action.

    Public rules (``role=None``) are left out: they are not anyone's queue.
    """
    if role is None:
        return set()
    return {rule.from_status for rule in active_rules() if rule.role == role}
