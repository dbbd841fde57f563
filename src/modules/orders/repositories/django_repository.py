"""Django ORM implementation of the Order repository.

Satisfies ``IOrderRepository`` using Django's QuerySet API.  Creation
persists the Order aggregate (Order + DeliveryAddress + OrderItems)
atomically; status changes go through ``state_machine.transition_order``
and never through ``save``.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import structlog
from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import QuerySet

from modules.orders.models import DeliveryAddress, Order, OrderItem
from modules.orders.repositories.interfaces import IOrderRepository
from shared.domain.money import ZERO, to_money

logger = structlog.get_logger(__name__)

_RELATIONS = ("items", "status_log", "assignments__driver")


class OrderDjangoRepository(IOrderRepository):
    """Concrete Order repository backed by Django ORM."""

    # ------------------------------------------------------------------
    # Create (aggregate root + children)
    # ------------------------------------------------------------------

    @transaction.atomic
    def create(self, data: Dict[str, Any]) -> Order:
        customer = data["customer"]
        items = data["items"]
        subtotal = sum(
            (to_money(item["unit_price"]) * item["quantity"] for item in items), ZERO
        )

        order = Order(
            customer_name=customer["name"],
            customer_email=customer["email"],
            customer_phone=customer["phone"],
            payment_method=data["payment_method"],
            subtotal=to_money(subtotal),
            shipping_price=to_money(data["shipping_price"]),
            distance_km=data.get("distance_km"),
            free_shipping=data.get("free_shipping", False),
            notes=data.get("notes", ""),
            idempotency_key=data.get("idempotency_key"),
        )
        order.save()

        DeliveryAddress.objects.create(order=order, **data["address"])
        for item_data in items:
            OrderItem.objects.create(
                order=order,
                product_id=item_data["product_id"],
                product_name=item_data["product_name"],
                product_sku=item_data["product_sku"],
                quantity=item_data["quantity"],
                unit_price=to_money(item_data["unit_price"]),
            )

        logger.info(
            "order.persisted",
            order_id=str(order.id),
            code=order.code,
            item_count=len(items),
            total=str(order.total),
        )
        return order

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def queryset(self) -> QuerySet:
        return Order.objects.select_related("address").prefetch_related(*_RELATIONS)

    def get_by_id(self, id: str) -> Optional[Order]:
        """Returns ``None`` for non-existent or invalid IDs."""
        try:
            return self.queryset().filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def list(self, filters: Optional[Dict[str, Any]] = None) -> List[Order]:
        queryset = self.queryset()
        if filters:
            queryset = queryset.filter(**filters)
        return list(queryset)

    def get_for_update(self, id: str) -> Optional[Order]:
        try:
            return Order.objects.select_for_update().filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def get_by_code(self, code: str) -> Optional[Order]:
        return self.queryset().filter(code=code.strip().upper()).first()

    def get_by_idempotency_key(self, key: str) -> Optional[Order]:
        return self.queryset().filter(idempotency_key=key).first()

    def get_by_correlation_id_for_update(self, correlation_id: str) -> Optional[Order]:
        return (
            Order.objects.select_for_update()
            .filter(payment_correlation_id=correlation_id)
            .first()
        )

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    def save(self, entity: Order) -> Order:
        entity.save()
        return entity

    def update_fields(self, order: Order, fields: List[str]) -> Order:
        order.save(update_fields=fields)
        logger.debug("order.fields_updated", order_id=str(order.id), fields=fields)
        return order
