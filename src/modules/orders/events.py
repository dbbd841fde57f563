"""Domain events for the Orders bounded context."""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar

from shared.domain.events import DomainEvent


@dataclass(frozen=True, kw_only=True)
class OrderCreated(DomainEvent):
    """Raised when checkout persists a new order."""

    topic: ClassVar[str] = "orders"

    code: str
    total: str
    payment_method: str


@dataclass(frozen=True, kw_only=True)
class OrderStatusLogged(DomainEvent):
    """Raised for every entry appended to an order's status log."""

    topic: ClassVar[str] = "notifications"

    code: str
    status: str
    previous_status: str
    sequence: int
    note: str = ""
    actor: str = ""
