"""Standardized error envelope for DRF exceptions.

Every framework-level error (authentication, permission, validation,
throttling, 404) is rendered as::

    {"type": "client_error", "errors": [{"code": ..., "detail": ..., "attr": ...}]}

Domain exceptions raised by the service layer are translated by the views
themselves and never reach this handler.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import structlog
from rest_framework.exceptions import ValidationError
from rest_framework.views import exception_handler

logger = structlog.get_logger(__name__)


def _flatten(detail: Any, attr: Optional[str] = None) -> List[Dict[str, Any]]:
    if isinstance(detail, dict):
        errors: List[Dict[str, Any]] = []
        for key, value in detail.items():
            nested = key if attr is None else f"{attr}.{key}"
            if key == "non_field_errors":
                nested = attr
            errors.extend(_flatten(value, nested))
        return errors
    if isinstance(detail, list):
        errors = []
        for index, value in enumerate(detail):
            nested = attr
            if isinstance(value, dict) and attr is not None:
                nested = f"{attr}.{index}"
            errors.extend(_flatten(value, nested))
        return errors
    return [
        {
            "code": getattr(detail, "code", "error"),
            "detail": str(detail),
            "attr": attr,
        }
    ]


def standardized_exception_handler(exc, context):
    response = exception_handler(exc, context)
    if response is None:
        return None

    error_type = (
        "validation_error" if isinstance(exc, ValidationError) else "client_error"
    )
    if response.status_code >= 500:
        error_type = "server_error"

    detail = getattr(exc, "detail", response.data)
    response.data = {"type": error_type, "errors": _flatten(detail)}

    logger.warning(
        "api.error",
        status_code=response.status_code,
        error_type=error_type,
        view=context.get("view").__class__.__name__ if context.get("view") else None,
    )
    return response
