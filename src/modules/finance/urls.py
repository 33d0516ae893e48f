"""Finance URL configuration."""

from __future__ import annotations

from rest_framework.routers import DefaultRouter

from modules.finance.views import FinancialEntryViewSet

router = DefaultRouter(trailing_slash=True)
router.register("financial-entries", FinancialEntryViewSet, basename="financial-entry")

urlpatterns = router.urls
