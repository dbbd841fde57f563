"""Domain events for the Payments bounded context."""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar, Optional

from shared.domain.events import DomainEvent


@dataclass(frozen=True, kw_only=True)
class PaymentStatusChanged(DomainEvent):
    """Raised once per applied gateway revision that changed the status."""

    topic: ClassVar[str] = "payments"

    code: str
    old_status: str
    new_status: str
    revision: Optional[int]
    correlation_id: str
