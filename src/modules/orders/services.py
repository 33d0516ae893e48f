"""Order service layer (Use Cases).

Orchestrates quote creation and every move along the order pipeline.
Each write is atomic: the order update, its history entry and the
outbox event commit or roll back together.

Business rules enforced:
- Orders are created in ``rascunho`` by sellers only.
- ``statusHistory`` is append-only and its newest entry matches ``status``.
- Role actions are validated against the single transition table
  (``workflow.TRANSITION_RULES``): role, current status, and reason.
- Rejections require a non-empty ``rejection_reason``.
- Side-effect fields (payment flag, production stamps, QR code, release
  stamp) are computed here, never trusted from the client.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional
from uuid import UUID

import structlog
from django.conf import settings
from django.db import transaction
from django.utils import timezone

from modules.core.actors import Actor, UserRole
from modules.orders import workflow
from modules.orders.constants import (
    QR_RELEASE_USER,
    SYSTEM_USER,
    OrderStatus,
    PaymentStatus,
)
from modules.orders.dtos import TransitionRequestDTO
from modules.orders.events import OrderCreated, OrderStatusChanged
from modules.orders.exceptions import (
    ActionNotAllowed,
    InvalidOrderStatus,
    MissingRejectionReason,
    OrderNotFound,
)
from modules.orders.workflow import HistoryEntry, TransitionRule, apply_transition
from shared.infrastructure.bus import event_bus

if TYPE_CHECKING:
    from datetime import datetime

    from modules.orders.dtos import CreateOrderDTO
    from modules.orders.models import Order
    from modules.orders.repositories.interfaces import IOrderRepository

logger = structlog.get_logger(__name__)

ORDER_CREATED_NOTE = "Order created"


def build_qr_code_url(order_id: Any) -> str:
    """Public release link encoded in the order's QR code."""
    base = settings.QR_CODE_BASE_URL.rstrip("/")
    return f"{base}/qr/{order_id}"


class OrderService:
    """Application service for Order use-cases.

    Receives the repository via constructor injection (DIP).
    """

    def __init__(self, order_repository: IOrderRepository) -> None:
        self._order_repo = order_repository

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    @transaction.atomic
    def create_order(self, dto: CreateOrderDTO, actor: Actor) -> Order:
        """Create a quote in ``rascunho`` owned by the acting seller.

        Raises:
            ActionNotAllowed: the actor is not a seller.
        """
        if actor.role != UserRole.VENDEDOR:
            raise ActionNotAllowed("Only sellers can create orders.")

        log = logger.bind(seller_id=actor.id, client_id=dto.client_id)
        log.info("order.creation_started")

        order = self._order_repo.create(
            {
                "client_id": dto.client_id,
                "client_name": dto.client_name,
                "seller_id": actor.id,
                "seller_name": actor.name,
                "taxes": dto.taxes,
                "notes": dto.notes,
                "observation": dto.observation,
                "payment_method": dto.payment_method,
                "installments": dto.installments,
                "order_type": dto.order_type or "",
                "delivery_date": dto.delivery_date,
                "status": OrderStatus.RASCUNHO,
                "items": [item.model_dump() for item in dto.items],
            }
        )

        event = OrderCreated(
            aggregate_id=order.id, number=order.number, seller_name=actor.name
        )
        order.add_domain_event(event)
        self._order_repo.save(order)

        self._order_repo.add_history(
            order.id,
            HistoryEntry(
                status=OrderStatus.RASCUNHO,
                timestamp=timezone.now(),
                user=actor.name,
                note=ORDER_CREATED_NOTE,
            ),
        )

        log.info("order.created", order_id=str(order.id), number=order.number)
        event_bus.publish(event)
        return self._order_repo.get_by_id(str(order.id)) or order

    @transaction.atomic
    def transition(
        self,
        order_id: UUID | str,
        new_status: str,
        extra_fields: Optional[Mapping[str, Any]] = None,
        acting_user_name: str = SYSTEM_USER,
        note: str = "",
        now: Optional[datetime] = None,
    ) -> Order:
        """Move an order to ``new_status`` and append the history entry.

        This is the raw transition: it does NOT consult the role table.
        Order update, history insert and outbox event are a single
        transaction.

        Raises:
            OrderNotFound: order does not exist.
            InvalidTransitionPayload: unknown status or non-patchable field.
        """
        order = self._order_repo.get_for_update(str(order_id))
        if not order:
            raise OrderNotFound(f"Order {order_id} not found.")
        return self._commit_transition(
            order, new_status, extra_fields, acting_user_name, note, now
        )

    @transaction.atomic
    def perform_action(
        self,
        order_id: UUID | str,
        request: TransitionRequestDTO,
        actor: Actor,
    ) -> Order:
        """Fire a named role action after authorizing it against the table.

        Raises:
            OrderNotFound: order does not exist.
            UnknownOrderAction: action not in the (active) table.
            ActionNotAllowed: actor's role may not fire this action.
            InvalidOrderStatus: order is not in the action's source status.
            MissingRejectionReason: rejection without a reason.
        """
        rule = workflow.get_rule(request.action)

        order = self._order_repo.get_for_update(str(order_id))
        if not order:
            raise OrderNotFound(f"Order {order_id} not found.")

        log = logger.bind(
            order_id=str(order.id),
            action=rule.action,
            role=actor.role,
            current_status=order.status,
        )

        if not workflow.role_matches(rule, actor.role):
            log.warning("order.action_forbidden")
            raise ActionNotAllowed(
                f"Role '{actor.role}' cannot perform '{rule.action}'."
            )

        if order.status != rule.from_status:
            log.warning("order.invalid_transition", target_status=rule.to_status)
            raise InvalidOrderStatus(
                f"Cannot {rule.action} an order in status {order.status}."
            )

        if rule.requires_reason and not request.rejection_reason:
            log.warning("order.rejection_without_reason")
            raise MissingRejectionReason("A rejection reason is required.")

        now = timezone.now()
        extra = self._side_effect_fields(rule, order, request, actor, now)
        return self._commit_transition(
            order, rule.to_status, extra, actor.name, request.note, now
        )

    def release_from_qr(
        self, order_id: UUID | str, released_by: Optional[str] = None
    ) -> Order:
        """Public release triggered from the QR-code page."""
        name = released_by or QR_RELEASE_USER
        return self.perform_action(
            order_id,
            TransitionRequestDTO(action="release_product"),
            Actor(id="", name=name, role=None),
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_order(self, order_id: str) -> Order:
        """Raises ``OrderNotFound`` if the order does not exist."""
        order = self._order_repo.get_by_id(order_id)
        if not order:
            raise OrderNotFound(f"Order {order_id} not found.")
        return order

    def list_orders(self, filters: Optional[Dict[str, Any]] = None) -> List[Order]:
        return self._order_repo.list(filters)

    def available_actions(self, order: Order, actor: Actor) -> List[TransitionRule]:
        """Actions the actor may fire on the order right now (drives the UI)."""
        return workflow.rules_for(actor.role, order.status)

    def work_queue(self, actor: Actor) -> List[Order]:
        """Orders waiting on the actor's role (the role dashboard)."""
        statuses = workflow.actionable_statuses(actor.role)
        if not statuses:
            return []
        return self._order_repo.list_by_statuses(statuses)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _side_effect_fields(
        self,
        rule: TransitionRule,
        order: Order,
        request: TransitionRequestDTO,
        actor: Actor,
        now: datetime,
    ) -> Dict[str, Any]:
        extra: Dict[str, Any] = {}
        if rule.payment_status:
            extra["payment_status"] = rule.payment_status
        if rule.requires_reason:
            extra["rejection_reason"] = request.rejection_reason
        if rule.action == "submit_to_financial" and request.receipt_url:
            extra["receipt_url"] = request.receipt_url
        if rule.to_status == OrderStatus.EM_PRODUCAO:
            extra["production_started_at"] = now
        if rule.to_status == OrderStatus.PRODUCAO_FINALIZADA:
            extra["production_finished_at"] = now
            extra["qr_code"] = build_qr_code_url(order.id)
        if rule.to_status == OrderStatus.PRODUTO_LIBERADO:
            extra["released_at"] = now
            extra["released_by"] = actor.name
        return extra

    def _commit_transition(
        self,
        order: Order,
        new_status: str,
        extra_fields: Optional[Mapping[str, Any]],
        acting_user_name: str,
        note: str,
        now: Optional[datetime],
    ) -> Order:
        entry = apply_transition(
            order,
            new_status,
            extra_fields=extra_fields,
            acting_user_name=acting_user_name,
            note=note,
            now=now,
        )

        payment_confirmed = (
            dict(extra_fields or {}).get("payment_status") == PaymentStatus.PAGO
        )
        event = OrderStatusChanged(
            aggregate_id=order.id,
            old_status=entry.old_status,
            new_status=entry.status,
            changed_by=entry.user,
            payment_confirmed=payment_confirmed,
        )
        order.add_domain_event(event)
        self._order_repo.save(order)
        self._order_repo.add_history(order.id, entry)

        logger.info(
            "order.status_updated",
            order_id=str(order.id),
            old_status=entry.old_status,
            new_status=entry.status,
            changed_by=entry.user,
        )
        self._dispatch_status_event(event)
        return self._order_repo.get_by_id(str(order.id)) or order

    def _dispatch_status_event(self, event: OrderStatusChanged) -> None:
        """Publish in-process; handlers run inside the same transaction."""
        event_bus.publish(event)
