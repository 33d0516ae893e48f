"""Unit tests for OrderService.

Covers:
- Quote creation: seller-only, totals, number, initial history entry.
- Role actions: authorization, source status, rejection reason.
- Side-effect fields stamped per transition.
- History invariants: append-only, newest entry mirrors ``status``.
- Raw ``transition`` and QR release.
- Work queues and available actions per role.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone as dt_timezone
from decimal import Decimal

import pytest
from django.utils import timezone
from freezegun import freeze_time

from modules.core.actors import Actor, UserRole
from modules.orders.constants import OrderStatus, PaymentStatus
from modules.orders.dtos import CreateOrderDTO, CreateOrderItemDTO, TransitionRequestDTO
from modules.orders.exceptions import (
    ActionNotAllowed,
    InvalidOrderStatus,
    InvalidTransitionPayload,
    MissingRejectionReason,
    OrderNotFound,
    UnknownOrderAction,
)
from modules.orders.models import Order, OrderStatusHistory
from modules.orders.rendering import render_history

pytestmark = pytest.mark.unit


def _history(order: Order) -> list[OrderStatusHistory]:
    return list(OrderStatusHistory.objects.filter(order_id=order.id))


# ---------------------------------------------------------------------------
# Creation
# ---------------------------------------------------------------------------


class TestCreateOrder:
    def test_creates_draft_with_derived_totals(self, order_service, actors):
        dto = CreateOrderDTO(
            client_id="cli-9",
            client_name="Joana",
            items=[
                CreateOrderItemDTO(
                    product="Portão",
                    quantity=2,
                    unit_price=Decimal("100.00"),
                    discount=Decimal("10"),
                ),
                CreateOrderItemDTO(
                    product="Grade",
                    quantity=1,
                    unit_price=Decimal("50.00"),
                    discount=Decimal("5.00"),
                    discount_type="value",
                ),
            ],
            taxes=Decimal("12.50"),
        )

        order = order_service.create_order(dto, actors[UserRole.VENDEDOR])

        assert order.status == OrderStatus.RASCUNHO
        assert order.subtotal == Decimal("225.00")
        assert order.total == Decimal("237.50")
        assert order.seller_name == "Vera Vendas"
        assert order.number.startswith("PED-")

    def test_initial_history_entry(self, make_order):
        order = make_order()

        history = _history(order)
        assert len(history) == 1
        assert history[0].status == OrderStatus.RASCUNHO
        assert history[0].old_status is None
        assert history[0].changed_by == "Vera Vendas"

    @pytest.mark.parametrize(
        "role", [UserRole.FINANCEIRO, UserRole.GESTOR, UserRole.PRODUCAO]
    )
    def test_only_sellers_create(self, order_service, actors, role):
        dto = CreateOrderDTO(
            client_id="c",
            client_name="C",
            items=[CreateOrderItemDTO(product="X", quantity=1, unit_price=1)],
        )
        with pytest.raises(ActionNotAllowed):
            order_service.create_order(dto, actors[role])
        assert Order.objects.count() == 0

    def test_anonymous_cannot_create(self, order_service):
        dto = CreateOrderDTO(
            client_id="c",
            client_name="C",
            items=[CreateOrderItemDTO(product="X", quantity=1, unit_price=1)],
        )
        with pytest.raises(ActionNotAllowed):
            order_service.create_order(dto, Actor.system())


# ---------------------------------------------------------------------------
# Role actions
# ---------------------------------------------------------------------------


class TestPerformAction:
    def test_submit_then_financial_approve(self, make_order, advance):
        order = make_order()

        order = advance(order, "submit_to_financial")
        assert order.status == OrderStatus.AGUARDANDO_FINANCEIRO

        before = len(_history(order))
        order = advance(order, "financial_approve")

        assert order.status == OrderStatus.APROVADO_FINANCEIRO
        assert order.payment_status == PaymentStatus.PAGO
        history = _history(order)
        assert len(history) == before + 1
        assert history[-1].changed_by == "Fábio Financeiro"
        assert history[-1].old_status == OrderStatus.AGUARDANDO_FINANCEIRO

    def test_submit_keeps_receipt_url(self, make_order, advance):
        order = advance(
            make_order(),
            "submit_to_financial",
            receipt_url="https://files.example.com/comprovante.pdf",
        )
        assert order.receipt_url == "https://files.example.com/comprovante.pdf"

    def test_financial_reject_records_reason(
        self, make_order, advance, order_service, actors
    ):
        order = advance(make_order(), "submit_to_financial")

        order = order_service.perform_action(
            order.id,
            TransitionRequestDTO(
                action="financial_reject", rejection_reason="sem comprovante"
            ),
            actors[UserRole.FINANCEIRO],
        )

        assert order.status == OrderStatus.REJEITADO_FINANCEIRO
        assert order.rejection_reason == "sem comprovante"
        assert order.is_terminal

    @pytest.mark.parametrize("reason", ["", "   "])
    def test_rejection_requires_reason(
        self, make_order, advance, order_service, actors, reason
    ):
        order = advance(make_order(), "submit_to_financial")

        with pytest.raises(MissingRejectionReason):
            order_service.perform_action(
                order.id,
                TransitionRequestDTO(action="financial_reject", rejection_reason=reason),
                actors[UserRole.FINANCEIRO],
            )

        order.refresh_from_db()
        assert order.status == OrderStatus.AGUARDANDO_FINANCEIRO
        assert len(_history(order)) == 2

    def test_manager_reject_requires_reason(
        self, make_order, advance, order_service, actors
    ):
        order = advance(
            make_order(), "submit_to_financial", "financial_approve", "send_to_manager"
        )
        with pytest.raises(MissingRejectionReason):
            order_service.perform_action(
                order.id,
                TransitionRequestDTO(action="manager_reject"),
                actors[UserRole.GESTOR],
            )

    def test_wrong_role_is_forbidden(self, make_order, order_service, actors):
        order = make_order()
        with pytest.raises(ActionNotAllowed):
            order_service.perform_action(
                order.id,
                TransitionRequestDTO(action="submit_to_financial"),
                actors[UserRole.PRODUCAO],
            )

    def test_wrong_source_status_is_rejected(self, make_order, order_service, actors):
        order = make_order()
        with pytest.raises(InvalidOrderStatus):
            order_service.perform_action(
                order.id,
                TransitionRequestDTO(action="financial_approve"),
                actors[UserRole.FINANCEIRO],
            )

    def test_unknown_action(self, make_order, order_service, actors):
        with pytest.raises(UnknownOrderAction):
            order_service.perform_action(
                make_order().id,
                TransitionRequestDTO(action="cancel"),
                actors[UserRole.VENDEDOR],
            )

    def test_missing_order(self, order_service, actors):
        with pytest.raises(OrderNotFound):
            order_service.perform_action(
                "0190b1c2-0000-7000-8000-000000000000",
                TransitionRequestDTO(action="submit_to_financial"),
                actors[UserRole.VENDEDOR],
            )

    def test_financial_shortcut_to_production(self, make_order, advance):
        order = advance(
            make_order(), "submit_to_financial", "financial_approve_to_production"
        )
        assert order.status == OrderStatus.AGUARDANDO_PRODUCAO
        assert order.payment_status == PaymentStatus.PAGO

    def test_shortcut_disabled_by_setting(
        self, settings, make_order, advance, order_service, actors
    ):
        settings.ORDER_ALLOW_MANAGER_BYPASS = False
        order = advance(make_order(), "submit_to_financial", "financial_approve")

        with pytest.raises(UnknownOrderAction):
            order_service.perform_action(
                order.id,
                TransitionRequestDTO(action="financial_send_to_production"),
                actors[UserRole.FINANCEIRO],
            )


class TestProductionAndRelease:
    def test_start_production_stamps_time(
        self, make_order, advance, happy_path_to_production
    ):
        order = advance(make_order(), *happy_path_to_production, "start_production")

        assert order.status == OrderStatus.EM_PRODUCAO
        assert order.production_started_at is not None

    def test_finish_production_sets_qr_code(
        self, make_order, advance, happy_path_to_production
    ):
        order = advance(
            make_order(),
            *happy_path_to_production,
            "start_production",
            "finish_production",
        )

        assert order.status == OrderStatus.PRODUCAO_FINALIZADA
        assert order.production_finished_at is not None
        assert order.qr_code
        assert str(order.id) in order.qr_code
        assert order.qr_code.startswith("https://erp.example.com/qr/")

    def test_timestamps_use_transition_time(
        self, make_order, advance, happy_path_to_production
    ):
        order = advance(make_order(), *happy_path_to_production, "start_production")
        finished_at = datetime(2030, 1, 15, 9, 0, tzinfo=dt_timezone.utc)

        with freeze_time(finished_at):
            order = advance(order, "finish_production")

        assert order.production_finished_at == finished_at
        assert order.updated_at == finished_at
        assert _history(order)[-1].timestamp == finished_at

    def test_release_from_qr_defaults_user(
        self, make_order, advance, order_service, happy_path_to_production
    ):
        order = advance(
            make_order(),
            *happy_path_to_production,
            "start_production",
            "finish_production",
        )

        order = order_service.release_from_qr(order.id)

        assert order.status == OrderStatus.PRODUTO_LIBERADO
        assert order.released_at is not None
        assert order.released_by == "QR Code Scan"
        assert _history(order)[-1].changed_by == "QR Code Scan"

    def test_release_records_named_scanner(
        self, make_order, advance, order_service, happy_path_to_production
    ):
        order = advance(
            make_order(),
            *happy_path_to_production,
            "start_production",
            "finish_production",
        )
        order = order_service.release_from_qr(order.id, released_by="Pedro Produção")
        assert order.released_by == "Pedro Produção"

    def test_release_before_finish_is_rejected(self, make_order, order_service):
        with pytest.raises(InvalidOrderStatus):
            order_service.release_from_qr(make_order().id)

    def test_release_twice_is_rejected(
        self, make_order, advance, order_service, happy_path_to_production
    ):
        order = advance(
            make_order(),
            *happy_path_to_production,
            "start_production",
            "finish_production",
            "release_product",
        )
        with pytest.raises(InvalidOrderStatus):
            order_service.release_from_qr(order.id)


# ---------------------------------------------------------------------------
# History invariants
# ---------------------------------------------------------------------------


class TestHistoryInvariants:
    def test_newest_entry_mirrors_status_along_full_path(
        self, make_order, advance, happy_path_to_production
    ):
        order = make_order()
        for action in (
            *happy_path_to_production,
            "start_production",
            "finish_production",
            "release_product",
        ):
            order = advance(order, action)
            assert _history(order)[-1].status == order.status

    def test_history_is_append_only(self, make_order, advance):
        order = make_order()
        snapshot = [(h.id, h.status) for h in _history(order)]

        order = advance(order, "submit_to_financial", "financial_approve")

        after = [(h.id, h.status) for h in _history(order)]
        assert after[: len(snapshot)] == snapshot
        assert len(after) == len(snapshot) + 2

    def test_failed_action_leaves_history_untouched(
        self, make_order, order_service, actors
    ):
        order = make_order()
        with pytest.raises(ActionNotAllowed):
            order_service.perform_action(
                order.id,
                TransitionRequestDTO(action="submit_to_financial"),
                actors[UserRole.GESTOR],
            )
        assert len(_history(order)) == 1


# ---------------------------------------------------------------------------
# Raw transition
# ---------------------------------------------------------------------------


class TestRawTransition:
    def test_transition_appends_history(self, make_order, order_service):
        order = make_order()

        order = order_service.transition(
            order.id,
            OrderStatus.AGUARDANDO_FINANCEIRO,
            acting_user_name="Importador",
            note="migração",
        )

        last = _history(order)[-1]
        assert order.status == OrderStatus.AGUARDANDO_FINANCEIRO
        assert last.changed_by == "Importador"
        assert last.note == "migração"

    def test_transition_defaults_to_system_user(self, make_order, order_service):
        order = order_service.transition(
            make_order().id, OrderStatus.AGUARDANDO_FINANCEIRO
        )
        assert _history(order)[-1].changed_by == "Sistema"

    def test_transition_rejects_non_patchable_fields(self, make_order, order_service):
        order = make_order()
        with pytest.raises(InvalidTransitionPayload):
            order_service.transition(
                order.id,
                OrderStatus.AGUARDANDO_FINANCEIRO,
                extra_fields={"client_name": "Outro"},
            )
        order.refresh_from_db()
        assert order.status == OrderStatus.RASCUNHO
        assert order.client_name == "Cliente Teste"

    def test_backdated_transition_stays_last_in_history(self, make_order, order_service):
        order = make_order()
        earlier = timezone.now() - timedelta(hours=1)

        order = order_service.transition(
            order.id, OrderStatus.AGUARDANDO_FINANCEIRO, now=earlier
        )

        history = _history(order)
        assert [h.status for h in history] == [
            OrderStatus.RASCUNHO,
            OrderStatus.AGUARDANDO_FINANCEIRO,
        ]
        assert history[-1].status == order.status
        assert history[-1].timestamp == earlier
        timeline = render_history(order)
        assert timeline[-1].status == order.status
        assert timeline[-1].is_current is True

    def test_explicit_time_is_kept_as_updated_at(self, make_order, order_service):
        stamp = timezone.now() - timedelta(hours=1)

        order = order_service.transition(
            make_order().id, OrderStatus.AGUARDANDO_FINANCEIRO, now=stamp
        )

        order.refresh_from_db()
        assert order.updated_at == stamp
        assert _history(order)[-1].timestamp == order.updated_at

    def test_transition_missing_order(self, order_service):
        with pytest.raises(OrderNotFound):
            order_service.transition("not-a-uuid", OrderStatus.EM_PRODUCAO)


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


class TestQueues:
    def test_work_queue_per_role(self, make_order, advance, order_service, actors):
        draft = make_order()
        pending_fin = advance(make_order(), "submit_to_financial")
        pending_mgr = advance(
            make_order(), "submit_to_financial", "financial_approve", "send_to_manager"
        )

        def ids(role):
            return {o.id for o in order_service.work_queue(actors[role])}

        assert ids(UserRole.VENDEDOR) == {draft.id}
        assert ids(UserRole.FINANCEIRO) == {pending_fin.id}
        assert ids(UserRole.GESTOR) == {pending_mgr.id}
        assert ids(UserRole.PRODUCAO) == set()
        assert order_service.work_queue(Actor.system()) == []

    def test_available_actions_follow_role(self, make_order, order_service, actors):
        order = make_order()
        seller_actions = order_service.available_actions(
            order, actors[UserRole.VENDEDOR]
        )
        assert [rule.action for rule in seller_actions] == ["submit_to_financial"]
        assert order_service.available_actions(order, actors[UserRole.GESTOR]) == []

    def test_get_order_not_found(self, order_service):
        with pytest.raises(OrderNotFound):
            order_service.get_order("0190b1c2-0000-7000-8000-000000000000")
