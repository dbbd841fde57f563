"""Django ORM implementation of the assignment repository."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

import structlog
from django.core.exceptions import ValidationError
from django.db import transaction
from django.utils import timezone

from modules.deliveries.constants import ACTIVE_ASSIGNMENT_STATUSES, AssignmentStatus
from modules.deliveries.models import DeliveryAssignment
from modules.deliveries.repositories.interfaces import IAssignmentRepository

logger = structlog.get_logger(__name__)


class AssignmentDjangoRepository(IAssignmentRepository):
    def _base(self):
        return DeliveryAssignment.objects.select_related(
            "order", "order__address", "driver"
        )

    def get_by_id(self, id: str) -> Optional[DeliveryAssignment]:
        try:
            return self._base().filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def list(self, filters: Optional[Dict[str, Any]] = None) -> List[DeliveryAssignment]:
        queryset = self._base()
        if filters:
            queryset = queryset.filter(**filters)
        return list(queryset)

    def save(self, entity: DeliveryAssignment) -> DeliveryAssignment:
        entity.save()
        return entity

    def get_active_for_order(self, order_id: UUID) -> Optional[DeliveryAssignment]:
        return (
            self._base()
            .filter(order_id=order_id, status__in=ACTIVE_ASSIGNMENT_STATUSES)
            .first()
        )

    def insert_active(
        self, order_id: UUID, driver_id: Any, source: str
    ) -> DeliveryAssignment:
        # Savepoint: a unique violation must not poison the outer transaction.
        with transaction.atomic():
            return DeliveryAssignment.objects.create(
                order_id=order_id,
                driver_id=driver_id,
                source=source,
                status=AssignmentStatus.PENDENTE,
            )

    def compare_and_set_status(
        self, assignment_id: UUID, expected: str, new: str, **fields: Any
    ) -> bool:
        updated = DeliveryAssignment.objects.filter(
            id=assignment_id, status=expected
        ).update(status=new, updated_at=timezone.now(), **fields)
        return updated == 1

    def release(self, assignment: DeliveryAssignment, when: datetime) -> bool:
        released = self.compare_and_set_status(
            assignment.id,
            assignment.status,
            AssignmentStatus.LIBERADA,
            released_at=when,
        )
        if released:
            assignment.status = AssignmentStatus.LIBERADA
            assignment.released_at = when
            logger.info(
                "delivery.assignment_released",
                assignment_id=str(assignment.id),
                order_id=str(assignment.order_id),
                driver_id=str(assignment.driver_id),
            )
        return released

    def list_for_driver(
        self, driver_id: Any, include_terminal: bool = False
    ) -> List[DeliveryAssignment]:
        queryset = self._base().filter(driver_id=driver_id)
        if not include_terminal:
            queryset = queryset.filter(status__in=ACTIVE_ASSIGNMENT_STATUSES)
        return list(queryset.order_by("created_at"))
