"""Read model of the storefront catalog.

Product CRUD belongs to the storefront; the fulfillment core only reads
name, price and availability at checkout time and snapshots them into
order items.  SKU is normalised to uppercase.
"""

from __future__ import annotations

from decimal import Decimal

from django.core.validators import MinValueValidator
from django.db import models

from modules.core.models import BaseModel


class ProductStatus(models.TextChoices):
    ACTIVE = "active", "Ativo"
    INACTIVE = "inactive", "Inativo"


class Product(BaseModel):
    sku = models.CharField(max_length=64, unique=True)
    name = models.CharField(max_length=255)
    price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0.01"))],
    )
    stock_quantity = models.PositiveIntegerField(default=0)
    status = models.CharField(
        max_length=20,
        choices=ProductStatus.choices,
        default=ProductStatus.ACTIVE,
    )

    class Meta:
        db_table = "catalog_products"
        ordering = ["name"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(price__gt=0),
                name="catalog_products_price_positive",
            ),
        ]

    def save(self, *args, **kwargs) -> None:
        if self.sku:
            self.sku = self.sku.strip().upper()
        super().save(*args, **kwargs)

    def __str__(self) -> str:
        return f"{self.sku} - {self.name}"
