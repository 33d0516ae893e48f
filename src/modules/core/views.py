import time
from typing import Any, Callable, Dict

import structlog
from django.core.cache import cache
from django.db import connections
from django.http import HttpRequest, JsonResponse
from django.utils import timezone
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from modules.core.actors import resolve_actor
from modules.core.models import EventStatus, OutboxEvent

logger = structlog.get_logger()


def _check_database() -> Dict[str, Any]:
    conn = connections["default"]
    conn.ensure_connection()
    with conn.cursor() as cursor:
        cursor.execute("SELECT 1")
        cursor.fetchone()
    return {}


def _check_cache() -> Dict[str, Any]:
    cache.set("_health_check", "ok", 10)
    if cache.get("_health_check") != "ok":
        raise ConnectionError("Cache read failed")
    return {}


def _check_outbox() -> Dict[str, Any]:
    # A growing backlog means the relay worker is down; reported, not fatal.
    return {
        "pending_events": OutboxEvent.objects.pending().count(),
        "failed_events": OutboxEvent.objects.filter(status=EventStatus.FAILED).count(),
    }


HEALTH_PROBES: Dict[str, Callable[[], Dict[str, Any]]] = {
    "database": _check_database,
    "cache": _check_cache,
    "outbox": _check_outbox,
}


def health_check(request: HttpRequest) -> JsonResponse:
    services: Dict[str, Dict[str, Any]] = {}
    overall_healthy = True

    for name, probe in HEALTH_PROBES.items():
        start = time.monotonic()
        try:
            details = probe()
        except Exception:
            services[name] = {"status": "down"}
            overall_healthy = False
            logger.error("health_check.probe_failed", service=name)
            continue
        services[name] = {
            "status": "up",
            "response_time_ms": round((time.monotonic() - start) * 1000, 2),
            **details,
        }

    status = "healthy" if overall_healthy else "unhealthy"
    logger.info("health_check.completed", status=status)

    return JsonResponse(
        {
            "status": status,
            "timestamp": timezone.now().isoformat(),
            "services": services,
        },
        status=200 if overall_healthy else 503,
    )


class ProtectedView(APIView):
    """Who am I: the display name recorded in status history and the
    pipeline role used to gate transitions."""

    permission_classes = [IsAuthenticated]

    def get(self, request: HttpRequest) -> Response:
        actor = resolve_actor(request.user)
        return Response(
            {
                "message": "authenticated",
                "user": actor.name,
                "role": actor.role,
            }
        )
