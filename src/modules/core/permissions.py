"""Role checks for admin and driver endpoints."""

from __future__ import annotations

from rest_framework.permissions import BasePermission

DRIVER_GROUP = "drivers"


def is_driver(user) -> bool:
    if not user or not user.is_authenticated or not user.is_active:
        return False
    return user.groups.filter(name=DRIVER_GROUP).exists()


class IsDriver(BasePermission):
    """Authenticated, active user belonging to the drivers group."""

    message = "Only drivers can perform this action."

    def has_permission(self, request, view) -> bool:
        return is_driver(request.user)
