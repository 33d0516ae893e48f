"""Order API views.

Exposes the ``OrderService`` via HTTP using DRF ViewSets.
Domain exceptions are caught and translated into appropriate
HTTP status codes: the view never swallows generic exceptions.
"""

from __future__ import annotations

from django_filters.rest_framework import DjangoFilterBackend
from pydantic import ValidationError as DTOValidationError
from rest_framework import serializers, status
from rest_framework.decorators import action
from rest_framework.filters import OrderingFilter, SearchFilter
from rest_framework.permissions import AllowAny
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.throttling import BaseThrottle, ScopedRateThrottle
from rest_framework.views import APIView
from rest_framework.viewsets import GenericViewSet

from modules.core.actors import resolve_actor
from modules.core.pagination import StandardResultsSetPagination
from modules.orders.constants import OrderStatus
from modules.orders.dtos import CreateOrderDTO, TransitionRequestDTO
from modules.orders.exceptions import (
    ActionNotAllowed,
    InvalidOrderStatus,
    InvalidTransitionPayload,
    MissingRejectionReason,
    OrderNotFound,
    UnknownOrderAction,
)
from modules.orders.filters import OrderFilter
from modules.orders.models import Order
from modules.orders.rendering import render_history, render_pipeline
from modules.orders.repositories.django_repository import OrderDjangoRepository
from modules.orders.serializers import (
    CreateOrderSerializer,
    OrderListSerializer,
    OrderSerializer,
    QRCodeOrderSerializer,
    TransitionSerializer,
)
from modules.orders.services import OrderService

ORDER_NOT_FOUND = {"detail": "Order not found."}


def _order_service() -> OrderService:
    return OrderService(order_repository=OrderDjangoRepository())


def _build_dto(dto_class, data):
    """Build a service DTO, re-raising pydantic failures as DRF validation errors."""
    try:
        return dto_class(**data)
    except DTOValidationError as exc:
        raise serializers.ValidationError(
            {
                ".".join(str(part) for part in error["loc"]) or "non_field_errors": [
                    error["msg"]
                ]
                for error in exc.errors(include_url=False)
            }
        ) from exc


def _domain_error_response(exc: Exception) -> Response:
    """Translate a pipeline exception into an HTTP response."""
    if isinstance(exc, OrderNotFound):
        return Response(ORDER_NOT_FOUND, status=status.HTTP_404_NOT_FOUND)
    if isinstance(exc, ActionNotAllowed):
        return Response({"detail": str(exc)}, status=status.HTTP_403_FORBIDDEN)
    return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)


PIPELINE_ERRORS = (
    OrderNotFound,
    ActionNotAllowed,
    InvalidOrderStatus,
    InvalidTransitionPayload,
    MissingRejectionReason,
    UnknownOrderAction,
)


class OrderViewSet(GenericViewSet):
    """ViewSet for Order operations.

    Uses ``OrderService`` with an injected repository (DIP).  Does **not**
    extend ``ModelViewSet``: every write goes through the service layer.
    """

    queryset = Order.objects.all()
    filterset_class = OrderFilter
    search_fields = ["number", "client_name", "seller_name"]
    ordering_fields = ["created_at", "total", "status", "number"]
    ordering = ["-created_at", "-id"]
    filter_backends = [DjangoFilterBackend, SearchFilter, OrderingFilter]

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._service = _order_service()

    def get_throttles(self) -> list[BaseThrottle]:
        """Define escopos de throttling por ação."""
        throttle_scope: str | None
        if self.action == "create":
            throttle_scope = "order_creation"
        elif self.action in {"list", "retrieve", "queue"}:
            throttle_scope = "order_listing"
        else:
            throttle_scope = None
        self.throttle_scope = throttle_scope
        return super().get_throttles()

    def get_queryset(self):
        return OrderDjangoRepository().queryset()

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def create(self, request: Request) -> Response:
        """POST /api/v1/orders/: a seller opens a quote (``rascunho``)."""
        serializer = CreateOrderSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        dto = _build_dto(CreateOrderDTO, serializer.validated_data)

        try:
            order = self._service.create_order(dto, resolve_actor(request.user))
        except ActionNotAllowed as exc:
            return _domain_error_response(exc)

        return Response(OrderSerializer(order).data, status=status.HTTP_201_CREATED)

    # ------------------------------------------------------------------
    # List / Retrieve
    # ------------------------------------------------------------------

    def list(self, request: Request) -> Response:
        """GET /api/v1/orders/: filtered, ordered, paginated."""
        queryset = self.filter_queryset(self.get_queryset())

        paginator = StandardResultsSetPagination()
        page = paginator.paginate_queryset(queryset, request)
        serializer = OrderListSerializer(page, many=True)
        return paginator.get_paginated_response(serializer.data)

    def retrieve(self, request: Request, pk: str | None = None) -> Response:
        """GET /api/v1/orders/{pk}/"""
        try:
            order = self._service.get_order(str(pk))
        except OrderNotFound as exc:
            return _domain_error_response(exc)
        return Response(OrderSerializer(order).data)

    @action(detail=False, methods=["get"])
    def queue(self, request: Request) -> Response:
        """GET /api/v1/orders/queue/: orders waiting on the caller's role."""
        orders = self._service.work_queue(resolve_actor(request.user))
        return Response(OrderListSerializer(orders, many=True).data)

    # ------------------------------------------------------------------
    # Workflow
    # ------------------------------------------------------------------

    @action(detail=True, methods=["get"], url_path="actions")
    def available_actions(self, request: Request, pk: str | None = None) -> Response:
        """GET /api/v1/orders/{pk}/actions/: buttons to render for the caller."""
        try:
            order = self._service.get_order(str(pk))
        except OrderNotFound as exc:
            return _domain_error_response(exc)

        rules = self._service.available_actions(order, resolve_actor(request.user))
        return Response(
            [
                {
                    "action": rule.action,
                    "label": rule.label,
                    "to_status": rule.to_status,
                    "to_status_label": OrderStatus(rule.to_status).label,
                    "requires_reason": rule.requires_reason,
                }
                for rule in rules
            ]
        )

    @action(detail=True, methods=["post"])
    def transition(self, request: Request, pk: str | None = None) -> Response:
        """POST /api/v1/orders/{pk}/transition/: fire a role action."""
        serializer = TransitionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        dto = _build_dto(TransitionRequestDTO, serializer.validated_data)

        try:
            order = self._service.perform_action(
                str(pk), dto, resolve_actor(request.user)
            )
        except PIPELINE_ERRORS as exc:
            return _domain_error_response(exc)

        return Response(OrderSerializer(order).data)

    @action(detail=True, methods=["get"])
    def pipeline(self, request: Request, pk: str | None = None) -> Response:
        """GET /api/v1/orders/{pk}/pipeline/: progress along the flow."""
        try:
            order = self._service.get_order(str(pk))
        except OrderNotFound as exc:
            return _domain_error_response(exc)
        return Response(render_pipeline(order).model_dump(mode="json"))

    @action(detail=True, methods=["get"])
    def history(self, request: Request, pk: str | None = None) -> Response:
        """GET /api/v1/orders/{pk}/history/: status timeline, oldest first."""
        try:
            order = self._service.get_order(str(pk))
        except OrderNotFound as exc:
            return _domain_error_response(exc)
        return Response(
            [entry.model_dump(mode="json") for entry in render_history(order)]
        )


class QRCodeReleaseView(APIView):
    """Public page behind the QR code printed when production finishes.

    ``GET`` shows the order summary; ``POST`` releases the product.  No
    authentication is required: an authenticated scanner is recorded by
    name, anyone else as ``"QR Code Scan"``.
    """

    permission_classes = [AllowAny]
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "qr_release"

    def get(self, request: Request, order_id: str) -> Response:
        try:
            order = _order_service().get_order(order_id)
        except OrderNotFound as exc:
            return _domain_error_response(exc)

        data = dict(QRCodeOrderSerializer(order).data)
        data["can_release"] = order.status == OrderStatus.PRODUCAO_FINALIZADA
        return Response(data)

    def post(self, request: Request, order_id: str) -> Response:
        actor = resolve_actor(request.user)
        released_by = None if actor.is_anonymous else actor.name

        try:
            order = _order_service().release_from_qr(order_id, released_by=released_by)
        except PIPELINE_ERRORS as exc:
            return _domain_error_response(exc)

        return Response(QRCodeOrderSerializer(order).data)
