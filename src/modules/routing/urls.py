"""Driver route URL configuration."""

from __future__ import annotations

from django.urls import path

from modules.routing.views import (
    DriverRouteMoveView,
    DriverRouteOptimizeView,
    DriverRouteView,
)

urlpatterns = [
    path("driver/route/", DriverRouteView.as_view(), name="driver-route"),
    path("driver/route/move/", DriverRouteMoveView.as_view(), name="driver-route-move"),
    path(
        "driver/route/optimize/",
        DriverRouteOptimizeView.as_view(),
        name="driver-route-optimize",
    ),
]
