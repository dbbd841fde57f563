"""Per-driver persisted visit order."""

from __future__ import annotations

from django.conf import settings
from django.db import models

from modules.core.models import BaseModel


class RoutePlan(BaseModel):
    """The driver's saved ordering of assignment ids.

    Ids that are no longer active are ignored when the route is read,
    so the list never needs cleaning up when deliveries finish.
    """

    driver: models.OneToOneField = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="route_plan",
    )
    assignment_ids = models.JSONField(default=list, blank=True)

    class Meta:
        db_table = "route_plans"

    def __str__(self) -> str:
        return f"RoutePlan({self.driver_id}, {len(self.assignment_ids)} stops)"
