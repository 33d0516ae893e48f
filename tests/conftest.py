from __future__ import annotations

from decimal import Decimal

import pytest
from django.contrib.auth import get_user_model
from django.contrib.auth.models import Group
from django.core.cache import cache
from rest_framework.test import APIClient

from modules.core.actors import UserRole, resolve_actor
from modules.orders import workflow
from modules.orders.dtos import CreateOrderDTO, CreateOrderItemDTO, TransitionRequestDTO
from modules.orders.repositories.django_repository import OrderDjangoRepository
from modules.orders.services import OrderService

User = get_user_model()

ROLE_USERS = {
    UserRole.VENDEDOR: ("vera", "Vera", "Vendas"),
    UserRole.FINANCEIRO: ("fabio", "Fábio", "Financeiro"),
    UserRole.GESTOR: ("gina", "Gina", "Gestora"),
    UserRole.PRODUCAO: ("pedro", "Pedro", "Produção"),
}


@pytest.fixture(autouse=True)
def _use_db(db):
    """Automatically use the test database for all tests."""


@pytest.fixture(autouse=True)
def _clear_cache():
    """Throttle counters live in the cache; start every test from zero."""
    cache.clear()
    yield
    cache.clear()


@pytest.fixture()
def api_client():
    """DRF APIClient for testing API endpoints."""
    return APIClient()


@pytest.fixture()
def api_client_with_correlation(api_client):
    """APIClient pre-configured with a known correlation ID header."""
    cid = "test-correlation-id-fixture"
    api_client.defaults["HTTP_X_REQUEST_ID"] = cid
    return api_client, cid


# ---------------------------------------------------------------------------
# Users & actors
# ---------------------------------------------------------------------------


@pytest.fixture()
def make_user():
    def _make(role: str | None, username: str | None = None, **extra):
        if role is not None and username is None:
            username, first_name, last_name = ROLE_USERS[UserRole(role)]
            extra.setdefault("first_name", first_name)
            extra.setdefault("last_name", last_name)
        user = User.objects.create_user(
            username=username or "sem-papel", password="testpass123", **extra
        )
        if role is not None:
            group, _ = Group.objects.get_or_create(name=role)
            user.groups.add(group)
        return user

    return _make


@pytest.fixture()
def users(make_user):
    """One user per pipeline role, keyed by ``UserRole``."""
    return {role: make_user(role) for role in UserRole}


@pytest.fixture()
def actors(users):
    return {role: resolve_actor(user) for role, user in users.items()}


@pytest.fixture()
def role_client(users):
    """Factory returning an APIClient authenticated as the given role."""

    def _client(role: str) -> APIClient:
        client = APIClient()
        client.force_authenticate(user=users[UserRole(role)])
        return client

    return _client


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------


@pytest.fixture()
def order_service():
    return OrderService(order_repository=OrderDjangoRepository())


@pytest.fixture()
def order_payload():
    return {
        "client_id": "cli-42",
        "client_name": "Maria Oliveira",
        "items": [
            {"product": "Portão", "quantity": 2, "unit_price": "100.00"},
            {
                "product": "Grade",
                "quantity": 1,
                "unit_price": "50.00",
                "discount": "10.00",
                "discount_type": "value",
            },
        ],
        "taxes": "15.00",
    }


@pytest.fixture()
def make_order(order_service, actors):
    """Create a quote as the seller; returns the persisted Order."""

    def _make(**overrides):
        data = {
            "client_id": "cli-1",
            "client_name": "Cliente Teste",
            "items": [
                CreateOrderItemDTO(
                    product="Portão", quantity=2, unit_price=Decimal("100.00")
                )
            ],
        }
        data.update(overrides)
        return order_service.create_order(
            CreateOrderDTO(**data), actors[UserRole.VENDEDOR]
        )

    return _make


@pytest.fixture()
def advance(order_service, actors):
    """Fire a sequence of actions, each as the role the table assigns it."""

    def _advance(order, *actions: str, **request_fields):
        for action in actions:
            rule = workflow.get_rule(action)
            actor = actors[UserRole(rule.role)] if rule.role else None
            if actor is None:
                order = order_service.release_from_qr(order.id)
                continue
            fields = dict(request_fields)
            if rule.requires_reason:
                fields.setdefault("rejection_reason", "motivo de teste")
            order = order_service.perform_action(
                order.id, TransitionRequestDTO(action=action, **fields), actor
            )
        return order

    return _advance


@pytest.fixture()
def happy_path_to_production():
    """Actions taking a fresh quote to ``aguardando_producao`` via the manager."""
    return (
        "submit_to_financial",
        "financial_approve",
        "send_to_manager",
        "manager_approve",
        "manager_send_to_production",
    )
