"""Payment event ledger repository interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Dict

if TYPE_CHECKING:
    from modules.payments.models import PaymentEvent


class IPaymentEventRepository(ABC):
    @abstractmethod
    def exists(self, correlation_id: str, revision: int) -> bool:
        """Whether this gateway revision was already recorded."""

    @abstractmethod
    def record(self, data: Dict[str, Any]) -> PaymentEvent:
        """Insert a ledger row.

        Raises ``IntegrityError`` if (correlation_id, revision) exists.
        """
