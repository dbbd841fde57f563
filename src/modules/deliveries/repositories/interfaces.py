"""Delivery assignment repository interface."""

from __future__ import annotations

from abc import abstractmethod
from datetime import datetime
from typing import TYPE_CHECKING, Any, List, Optional
from uuid import UUID

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from modules.deliveries.models import DeliveryAssignment


class IAssignmentRepository(IRepository["DeliveryAssignment"]):
    @abstractmethod
    def get_active_for_order(self, order_id: UUID) -> Optional[DeliveryAssignment]:
        """The order's PENDENTE/EM_ROTA assignment, if any."""

    @abstractmethod
    def insert_active(
        self, order_id: UUID, driver_id: Any, source: str
    ) -> DeliveryAssignment:
        """Insert a PENDENTE assignment.

        Raises ``IntegrityError`` when the order already has an active
        assignment; the caller decides what that means.
        """

    @abstractmethod
    def compare_and_set_status(
        self, assignment_id: UUID, expected: str, new: str, **fields: Any
    ) -> bool:
        """Conditional update; ``False`` when the status was not *expected*."""

    @abstractmethod
    def release(self, assignment: DeliveryAssignment, when: datetime) -> bool:
        """Mark an active assignment LIBERADA; ``False`` if no longer active."""

    @abstractmethod
    def list_for_driver(
        self, driver_id: Any, include_terminal: bool = False
    ) -> List[DeliveryAssignment]:
        """The driver's assignments, oldest first."""
