"""Order repository interface.

Extends ``IRepository[Order]`` with methods required by the Order
aggregate: atomic creation with items and address, row locking, and
look-ups by customer code, idempotency key and payment correlation id.

The Service Layer depends exclusively on this contract (DIP).
"""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from django.db.models import QuerySet

    from modules.orders.models import Order


class IOrderRepository(IRepository["Order"]):
    """Repository contract for the Order aggregate root."""

    @abstractmethod
    def create(self, data: Dict[str, Any]) -> Order:
        """Create an order with its items and delivery address.

        ``data`` must include ``customer`` (name/email/phone), ``address``,
        ``items`` (``product_id``, ``product_name``, ``product_sku``,
        ``quantity``, ``unit_price``), ``shipping_price``,
        ``payment_method`` and optionally ``distance_km``,
        ``free_shipping``, ``notes`` and ``idempotency_key``.
        """

    @abstractmethod
    def get_by_id(self, id: str) -> Optional[Order]:
        """Retrieve an order with items, address, log and assignments loaded."""

    @abstractmethod
    def get_for_update(self, id: str) -> Optional[Order]:
        """Retrieve an order with a row-level lock."""

    @abstractmethod
    def get_by_code(self, code: str) -> Optional[Order]:
        """Retrieve an order by its customer-facing code."""

    @abstractmethod
    def get_by_idempotency_key(self, key: str) -> Optional[Order]:
        """Retrieve an order by its checkout idempotency key."""

    @abstractmethod
    def get_by_correlation_id_for_update(self, correlation_id: str) -> Optional[Order]:
        """Locked look-up by the gateway-issued correlation id."""

    @abstractmethod
    def queryset(self) -> QuerySet:
        """Base queryset with relations loaded, for filtering/pagination."""

    @abstractmethod
    def update_fields(self, order: Order, fields: List[str]) -> Order:
        """Persist the named fields of an already-loaded order."""
