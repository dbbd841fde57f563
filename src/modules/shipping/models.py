"""Shipping rate tiers, free-shipping cities and the global shipping config.

- ``ShippingRate`` intervals are half-open ``[min_distance, max_distance)``.
  Active intervals must not overlap (validated at write time by the
  service layer).
- ``FreeShippingCity`` waives the distance price for a (city, state) pair
  when the subtotal reaches ``min_order_amount``.
- ``ShippingConfig`` is a single row edited by admins.  It is read at the
  start of every quote; nothing caches it.
"""

from __future__ import annotations

from decimal import Decimal

from django.core.validators import MinValueValidator
from django.db import models

from modules.core.models import BaseModel


class ShippingRate(BaseModel):
    min_distance = models.DecimalField(
        max_digits=7,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0.00"))],
    )
    max_distance = models.DecimalField(max_digits=7, decimal_places=2)
    price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0.00"))],
    )
    active = models.BooleanField(default=True)

    class Meta:
        db_table = "shipping_rates"
        ordering = ["min_distance", "created_at"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(min_distance__lt=models.F("max_distance")),
                name="shipping_rates_interval_valid",
            ),
            models.CheckConstraint(
                condition=models.Q(price__gte=0),
                name="shipping_rates_price_non_negative",
            ),
        ]

    def __str__(self) -> str:
        return f"[{self.min_distance}, {self.max_distance}) km -> {self.price}"


class FreeShippingCity(BaseModel):
    city = models.CharField(max_length=120)
    state = models.CharField(max_length=2)
    active = models.BooleanField(default=True)
    min_order_amount = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        default=Decimal("0.00"),
        validators=[MinValueValidator(Decimal("0.00"))],
    )

    class Meta:
        db_table = "shipping_free_cities"
        ordering = ["state", "city"]
        constraints = [
            models.UniqueConstraint(
                fields=["city", "state"],
                name="shipping_free_cities_unique_city_state",
            ),
        ]

    def save(self, *args, **kwargs) -> None:
        self.city = " ".join(self.city.split())
        self.state = self.state.strip().upper()
        super().save(*args, **kwargs)

    def __str__(self) -> str:
        return f"{self.city}/{self.state}"


class ShippingConfig(BaseModel):
    """Process-wide shipping settings (single row)."""

    max_distance_km = models.DecimalField(
        max_digits=7,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0.01"))],
    )
    min_order_amount = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        default=Decimal("0.00"),
        validators=[MinValueValidator(Decimal("0.00"))],
    )

    class Meta:
        db_table = "shipping_config"

    def __str__(self) -> str:
        return f"radius={self.max_distance_km}km min_order={self.min_order_amount}"
