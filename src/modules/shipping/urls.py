"""Shipping URL configuration."""

from __future__ import annotations

from django.urls import path
from rest_framework.routers import DefaultRouter

from modules.shipping.views import (
    FreeShippingCityViewSet,
    QuoteView,
    ShippingConfigView,
    ShippingRateViewSet,
)

router = DefaultRouter(trailing_slash=True)
router.register("admin/shipping/rates", ShippingRateViewSet, basename="shipping-rate")
router.register(
    "admin/shipping/free-cities", FreeShippingCityViewSet, basename="free-city"
)

urlpatterns = [
    path("shipping/quote/", QuoteView.as_view(), name="shipping-quote"),
    path(
        "admin/shipping/config/",
        ShippingConfigView.as_view(),
        name="shipping-config",
    ),
] + router.urls
