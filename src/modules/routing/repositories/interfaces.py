"""Route plan repository interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, List


class IRoutePlanRepository(ABC):
    @abstractmethod
    def saved_order(self, driver_id: Any) -> List[str]:
        """Assignment ids in the driver's saved order (empty when never saved)."""

    @abstractmethod
    def save_order(self, driver_id: Any, assignment_ids: List[str]) -> None:
        """Replace the driver's saved order."""
