"""Delivery URL configuration."""

from __future__ import annotations

from rest_framework.routers import DefaultRouter

from modules.deliveries.views import DeliveryViewSet

router = DefaultRouter(trailing_slash=True)
router.register("deliveries", DeliveryViewSet, basename="delivery")

urlpatterns = router.urls
