"""Django ORM implementation of the route plan repository."""

from __future__ import annotations

from typing import Any, List

import structlog

from modules.routing.models import RoutePlan
from modules.routing.repositories.interfaces import IRoutePlanRepository

logger = structlog.get_logger(__name__)


class RoutePlanDjangoRepository(IRoutePlanRepository):
    def saved_order(self, driver_id: Any) -> List[str]:
        plan = RoutePlan.objects.filter(driver_id=driver_id).first()
        if plan is None:
            return []
        return [str(value) for value in plan.assignment_ids]

    def save_order(self, driver_id: Any, assignment_ids: List[str]) -> None:
        RoutePlan.objects.update_or_create(
            driver_id=driver_id,
            defaults={"assignment_ids": [str(value) for value in assignment_ids]},
        )
        logger.debug(
            "route.plan_saved", driver_id=str(driver_id), stops=len(assignment_ids)
        )
