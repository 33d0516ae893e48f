"""Read-only ledger API."""

from __future__ import annotations

from django_filters.rest_framework import DjangoFilterBackend
from rest_framework.filters import OrderingFilter
from rest_framework.mixins import ListModelMixin
from rest_framework.viewsets import GenericViewSet

from modules.core.pagination import StandardResultsSetPagination
from modules.finance.models import FinancialEntry
from modules.finance.serializers import FinancialEntrySerializer


class FinancialEntryViewSet(ListModelMixin, GenericViewSet):
    """GET /api/v1/financial-entries/"""

    queryset = FinancialEntry.objects.all()
    serializer_class = FinancialEntrySerializer
    pagination_class = StandardResultsSetPagination
    filter_backends = [DjangoFilterBackend, OrderingFilter]
    filterset_fields = ["type", "status", "category", "order_id"]
    ordering_fields = ["date", "amount", "created_at"]
    ordering = ["-date", "-created_at"]
