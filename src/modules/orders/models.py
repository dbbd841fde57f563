"""Order, OrderItem, DeliveryAddress and OrderStatusLog models.

Invariants:
- ``total == subtotal + shipping_price``; ``total`` is recomputed on
  every save and never written directly.
- ``subtotal`` is the sum of item subtotals, fixed at checkout.
- ``OrderItem`` snapshots product name, SKU and unit price at creation;
  live catalog prices are never read again.
- ``OrderStatusLog`` is append-only and totally ordered per order by
  ``sequence``.
- ``code`` is the customer-facing identifier (``EJG`` + 6 base-32
  characters); the UUIDv7 ``id`` is used for internal references.
"""

from __future__ import annotations

import secrets
from decimal import Decimal
from typing import Any

import structlog
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models

from modules.core.models import BaseModel
from modules.orders.constants import (
    ORDER_CODE_ALPHABET,
    ORDER_CODE_LENGTH,
    ORDER_CODE_MAX_RETRIES,
    ORDER_CODE_PREFIX,
    QR_SEPARATOR,
    TERMINAL_STATES,
    VALID_TRANSITIONS,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
)

logger = structlog.get_logger(__name__)


class Order(BaseModel):
    """Order aggregate root.

    ``payment_correlation_id`` is issued by the payment gateway at checkout
    and is the only key webhooks may use to find the order.
    ``payment_revision`` is the last gateway revision applied, ``None`` until
    the first one.
    """

    code: models.CharField = models.CharField(
        max_length=16, unique=True, editable=False
    )
    status: models.CharField = models.CharField(
        max_length=20,
        choices=OrderStatus.choices,
        default=OrderStatus.RECEBIDO,
    )
    payment_status: models.CharField = models.CharField(
        max_length=20,
        choices=PaymentStatus.choices,
        default=PaymentStatus.PENDENTE,
    )
    payment_method: models.CharField = models.CharField(
        max_length=20,
        choices=PaymentMethod.choices,
    )

    customer_name: models.CharField = models.CharField(max_length=255)
    customer_email: models.EmailField = models.EmailField()
    customer_phone: models.CharField = models.CharField(max_length=32)

    subtotal: models.DecimalField = models.DecimalField(
        max_digits=10, decimal_places=2, default=Decimal("0.00")
    )
    shipping_price: models.DecimalField = models.DecimalField(
        max_digits=10, decimal_places=2, default=Decimal("0.00")
    )
    total: models.DecimalField = models.DecimalField(
        max_digits=10, decimal_places=2, default=Decimal("0.00"), editable=False
    )
    distance_km: models.DecimalField = models.DecimalField(
        max_digits=9, decimal_places=2, null=True, blank=True
    )
    free_shipping: models.BooleanField = models.BooleanField(default=False)
    notes: models.TextField = models.TextField(blank=True, default="")

    payment_correlation_id: models.CharField = models.CharField(
        max_length=255, unique=True, null=True, blank=True
    )
    payment_revision: models.BigIntegerField = models.BigIntegerField(
        null=True, blank=True, default=None
    )
    payment_external_id: models.CharField = models.CharField(
        max_length=255, blank=True, default=""
    )
    payment_method_detail: models.CharField = models.CharField(
        max_length=100, blank=True, default=""
    )
    payment_redirect_url: models.URLField = models.URLField(
        max_length=1000, blank=True, default=""
    )
    idempotency_key: models.CharField = models.CharField(
        max_length=255, unique=True, null=True, blank=True
    )

    class Meta:
        db_table = "orders"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status"], name="orders_status_idx"),
            models.Index(fields=["payment_status"], name="orders_payment_status_idx"),
            models.Index(fields=["-created_at"], name="orders_created_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(subtotal__gte=0) & models.Q(shipping_price__gte=0),
                name="orders_amounts_non_negative",
            ),
        ]

    # ------------------------------------------------------------------
    # State Machine helpers
    # ------------------------------------------------------------------

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATES

    def can_transition_to(self, new_status: str) -> bool:
        return new_status in VALID_TRANSITIONS.get(self.status, set())

    @property
    def qr_payload(self) -> str:
        return f"{self.id}{QR_SEPARATOR}{self.code}"

    # ------------------------------------------------------------------
    # Code generation
    # ------------------------------------------------------------------

    @staticmethod
    def generate_code() -> str:
        suffix = "".join(
            secrets.choice(ORDER_CODE_ALPHABET) for _ in range(ORDER_CODE_LENGTH)
        )
        return f"{ORDER_CODE_PREFIX}{suffix}"

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def save(self, *args: Any, **kwargs: Any) -> None:
        if not self.code:
            for _ in range(ORDER_CODE_MAX_RETRIES):
                candidate = self.generate_code()
                if not Order.objects.filter(code=candidate).exists():
                    self.code = candidate
                    break
            else:
                raise RuntimeError(
                    f"Failed to generate unique order code after "
                    f"{ORDER_CODE_MAX_RETRIES} attempts"
                )
        self.total = Decimal(self.subtotal) + Decimal(self.shipping_price)
        update_fields = kwargs.get("update_fields")
        if update_fields is not None and "total" not in update_fields:
            if {"subtotal", "shipping_price"} & set(update_fields):
                kwargs["update_fields"] = list(update_fields) + ["total"]
        super().save(*args, **kwargs)

    def __str__(self) -> str:
        return f"{self.code} ({self.status})"


class DeliveryAddress(BaseModel):
    order: models.OneToOneField = models.OneToOneField(
        "orders.Order",
        on_delete=models.CASCADE,
        related_name="address",
    )
    street = models.CharField(max_length=255)
    number = models.CharField(max_length=20)
    complement = models.CharField(max_length=120, blank=True, default="")
    neighborhood = models.CharField(max_length=120)
    city = models.CharField(max_length=120)
    state = models.CharField(max_length=2)
    zip_code = models.CharField(max_length=8)
    reference = models.CharField(max_length=255, blank=True, default="")

    class Meta:
        db_table = "order_addresses"

    def one_line(self) -> str:
        parts = [f"{self.street}, {self.number}"]
        if self.complement:
            parts.append(self.complement)
        parts.append(f"{self.neighborhood}, {self.city}/{self.state}")
        return " - ".join(parts)

    def __str__(self) -> str:
        return self.one_line()


class OrderItem(BaseModel):
    """Line item with an immutable snapshot of the product."""

    order: models.ForeignKey = models.ForeignKey(
        "orders.Order",
        on_delete=models.CASCADE,
        related_name="items",
    )
    product_id: models.UUIDField = models.UUIDField()
    product_name: models.CharField = models.CharField(max_length=255)
    product_sku: models.CharField = models.CharField(max_length=64)
    quantity: models.PositiveIntegerField = models.PositiveIntegerField(
        default=1,
        validators=[MinValueValidator(1)],
    )
    unit_price: models.DecimalField = models.DecimalField(
        max_digits=10,
        decimal_places=2,
    )
    subtotal: models.DecimalField = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        editable=False,
    )

    class Meta:
        db_table = "order_items"
        ordering = ["created_at"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(quantity__gte=1),
                name="order_items_quantity_positive",
            ),
        ]

    def clean(self) -> None:
        super().clean()
        if self.quantity is not None and self.quantity < 1:
            raise ValidationError({"quantity": "Quantity must be at least 1."})

    def save(self, *args: Any, **kwargs: Any) -> None:
        self.subtotal = self.quantity * Decimal(self.unit_price)
        super().save(*args, **kwargs)

    def __str__(self) -> str:
        return f"{self.product_name} x{self.quantity} (R$ {self.subtotal})"


class OrderStatusLog(BaseModel):
    """Append-only audit trail, also the source of the tracking timeline.

    ``status`` is the order status after the entry was recorded; payment
    events are logged against the unchanged order status with a note.
    ``actor`` is free text (``system``, ``gateway``, ``admin:<user>``,
    ``driver:<user>``).
    """

    order: models.ForeignKey = models.ForeignKey(
        "orders.Order",
        on_delete=models.CASCADE,
        related_name="status_log",
    )
    sequence: models.PositiveIntegerField = models.PositiveIntegerField()
    status: models.CharField = models.CharField(
        max_length=20,
        choices=OrderStatus.choices,
    )
    note: models.TextField = models.TextField(blank=True, default="")
    actor: models.CharField = models.CharField(max_length=150, blank=True, default="")

    class Meta:
        db_table = "order_status_log"
        ordering = ["sequence"]
        constraints = [
            models.UniqueConstraint(
                fields=["order", "sequence"],
                name="order_status_log_unique_sequence",
            ),
        ]

    def save(self, *args: Any, **kwargs: Any) -> None:
        if not self._state.adding:
            raise ValidationError("Status log entries are append-only.")
        super().save(*args, **kwargs)

    def __str__(self) -> str:
        return f"{self.order_id} #{self.sequence}: {self.status}"
