"""Catalog DTOs handed to the order service."""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class ProductSnapshot(BaseModel):
    """Immutable view of a product at the moment it is read.

    ``price`` is the value captured into the order item; it is never
    re-read afterwards.
    """

    model_config = ConfigDict(frozen=True)

    id: UUID
    sku: str
    name: str
    price: Decimal
    stock_quantity: int
    active: bool
