"""Integration tests for cross-cutting platform behaviour.

Covers:
- Health check.
- Correlation ID middleware.
- Standardized error envelope.
- Authenticated identity endpoint.
- Celery configuration.
"""

from __future__ import annotations

import logging
import uuid

import pytest

from modules.core.actors import UserRole

pytestmark = pytest.mark.integration


class TestHealthCheck:
    def test_healthy(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["services"]["database"]["status"] == "up"
        assert data["services"]["cache"]["status"] == "up"

    def test_reports_outbox_backlog(self, client, make_order):
        make_order()
        outbox = client.get("/health").json()["services"]["outbox"]
        assert outbox["status"] == "up"
        assert outbox["pending_events"] == 1
        assert outbox["failed_events"] == 0


class TestCorrelationIdMiddleware:
    def test_returns_provided_request_id(self, client):
        response = client.get("/health", HTTP_X_REQUEST_ID="my-request-123")
        assert response["X-Request-ID"] == "my-request-123"

    def test_generates_uuid_when_absent(self, client):
        request_id = client.get("/health")["X-Request-ID"]
        assert str(uuid.UUID(request_id, version=4)) == request_id

    def test_malformed_request_id_is_replaced(self, client):
        response = client.get("/health", HTTP_X_REQUEST_ID="bad id with spaces")
        request_id = response["X-Request-ID"]
        assert request_id != "bad id with spaces"
        uuid.UUID(request_id)

    def test_correlation_id_in_logs(self, client, caplog):
        with caplog.at_level(logging.INFO):
            client.get("/health", HTTP_X_REQUEST_ID="log-test-correlation-456")
        assert any(
            "log-test-correlation-456" in record.getMessage() for record in caplog.records
        )


class TestStandardizedErrors:
    def test_auth_error_envelope(self, api_client):
        response = api_client.get("/api/v1/orders/")
        assert response.status_code == 401
        data = response.json()
        assert data["type"] == "client_error"
        assert data["errors"][0]["code"] == "not_authenticated"

    def test_validation_error_envelope(self, role_client):
        response = role_client(UserRole.VENDEDOR).post(
            "/api/v1/orders/", {}, format="json"
        )
        assert response.status_code == 400
        data = response.json()
        assert data["type"] == "validation_error"
        attrs = {error["attr"] for error in data["errors"]}
        assert {"client_id", "client_name", "items"} <= attrs

    def test_malformed_json_is_client_error(self, role_client):
        response = role_client(UserRole.VENDEDOR).post(
            "/api/v1/orders/", data="{", content_type="application/json"
        )
        assert response.status_code == 400
        assert response.json()["type"] == "client_error"


class TestMe:
    def test_reports_name_and_role(self, role_client):
        response = role_client(UserRole.GESTOR).get("/api/v1/me")
        assert response.status_code == 200
        assert response.json() == {
            "message": "authenticated",
            "user": "Gina Gestora",
            "role": "gestor",
        }

    def test_requires_auth(self, api_client):
        assert api_client.get("/api/v1/me").status_code == 401


class TestCeleryConfig:
    def test_app_exported(self):
        from config import celery_app

        assert celery_app.main == "erp"

    def test_json_serialization(self, settings):
        assert settings.CELERY_TASK_SERIALIZER == "json"
        assert settings.CELERY_ACCEPT_CONTENT == ["json"]

    def test_outbox_relay_is_scheduled(self, settings):
        schedule = settings.CELERY_BEAT_SCHEDULE["relay-outbox-events"]
        assert schedule["task"] == "core.relay_outbox_events"
