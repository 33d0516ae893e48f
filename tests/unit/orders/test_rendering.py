"""Unit tests for the pipeline and history renderers."""

from __future__ import annotations

import pytest

from modules.orders.constants import STATUS_FLOW, OrderStatus
from modules.orders.models import Order
from modules.orders.rendering import pipeline_index, render_history, render_pipeline

pytestmark = pytest.mark.unit


def _states(pipeline) -> list[str]:
    return [step.state for step in pipeline.steps]


class TestRenderPipeline:
    def test_draft_is_first_active_step(self):
        pipeline = render_pipeline(Order(status=OrderStatus.RASCUNHO))

        assert pipeline.current_index == 0
        assert pipeline.rejection is None
        assert _states(pipeline) == ["active"] + ["pending"] * (len(STATUS_FLOW) - 1)

    def test_middle_of_flow(self):
        pipeline = render_pipeline(Order(status=OrderStatus.AGUARDANDO_PRODUCAO))
        index = STATUS_FLOW.index(OrderStatus.AGUARDANDO_PRODUCAO)

        states = _states(pipeline)
        assert pipeline.current_index == index
        assert states[:index] == ["done"] * index
        assert states[index] == "active"
        assert set(states[index + 1 :]) == {"pending"}

    def test_released_order_completes_flow(self):
        pipeline = render_pipeline(Order(status=OrderStatus.PRODUTO_LIBERADO))
        assert _states(pipeline)[-1] == "active"
        assert "pending" not in _states(pipeline)

    def test_steps_carry_short_labels(self):
        pipeline = render_pipeline(Order(status=OrderStatus.RASCUNHO))
        assert pipeline.steps[0].label == "Criado"
        assert pipeline.steps[-1].label == "Liberado"

    @pytest.mark.parametrize(
        "status", [OrderStatus.REJEITADO_FINANCEIRO, OrderStatus.REJEITADO_GESTOR]
    )
    def test_rejection_renders_banner_instead_of_steps(self, status):
        order = Order(status=status, rejection_reason="sem comprovante")

        pipeline = render_pipeline(order)

        assert pipeline.current_index == -1
        assert pipeline.steps == []
        assert pipeline.rejection is not None
        assert pipeline.rejection.reason == "sem comprovante"
        assert pipeline.rejection.label == OrderStatus(status).label

    @pytest.mark.parametrize(
        "status", [OrderStatus.ENVIADO, OrderStatus.APROVADO_CLIENTE, "desconhecido"]
    )
    def test_status_off_the_flow_has_no_progress(self, status):
        pipeline = render_pipeline(Order(status=status))

        assert pipeline.current_index == -1
        assert set(_states(pipeline)) == {"pending"}

    def test_pipeline_index(self):
        assert pipeline_index(OrderStatus.RASCUNHO) == 0
        assert pipeline_index(OrderStatus.REJEITADO_GESTOR) == -1

    def test_rendering_does_not_mutate(self):
        order = Order(status=OrderStatus.EM_PRODUCAO)
        render_pipeline(order)
        assert order.status == OrderStatus.EM_PRODUCAO


class TestRenderHistory:
    def test_oldest_first_with_last_current(self, make_order, advance):
        order = advance(make_order(), "submit_to_financial", "financial_approve")

        timeline = render_history(order)

        assert [entry.status for entry in timeline] == [
            OrderStatus.RASCUNHO,
            OrderStatus.AGUARDANDO_FINANCEIRO,
            OrderStatus.APROVADO_FINANCEIRO,
        ]
        assert [entry.is_current for entry in timeline] == [False, False, True]
        assert timeline[0].label == "Rascunho"
        assert timeline[-1].user == "Fábio Financeiro"

    def test_carries_notes(self, make_order, advance):
        order = advance(make_order(), "submit_to_financial", note="urgente")
        assert render_history(order)[-1].note == "urgente"

    def test_empty_history(self):
        assert render_history(Order(), entries=[]) == []
