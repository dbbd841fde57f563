"""Shipping DTOs for the Service Layer."""

from __future__ import annotations

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator, model_validator


def _reject_float(value):
    if isinstance(value, float):
        raise ValueError("Monetary and distance values must be decimals, not floats.")
    return value


class ShippingConfigUpdateDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    max_distance_km: Optional[Decimal] = None
    min_order_amount: Optional[Decimal] = None

    @field_validator("max_distance_km", "min_order_amount", mode="before")
    @classmethod
    def reject_floats(cls, v):
        return _reject_float(v)

    @field_validator("max_distance_km")
    @classmethod
    def radius_must_be_positive(cls, v: Optional[Decimal]) -> Optional[Decimal]:
        if v is not None and v <= 0:
            raise ValueError("maxDistanceKm must be greater than zero.")
        return v

    @field_validator("min_order_amount")
    @classmethod
    def minimum_must_not_be_negative(cls, v: Optional[Decimal]) -> Optional[Decimal]:
        if v is not None and v < 0:
            raise ValueError("minOrderAmount cannot be negative.")
        return v


class ShippingRateDTO(BaseModel):
    """Full description of a rate tier (create or replace)."""

    model_config = ConfigDict(frozen=True)

    min_distance: Decimal
    max_distance: Decimal
    price: Decimal
    active: bool = True

    @field_validator("min_distance", "max_distance", "price", mode="before")
    @classmethod
    def reject_floats(cls, v):
        return _reject_float(v)

    @model_validator(mode="after")
    def interval_must_be_ordered(self):
        if self.min_distance < 0:
            raise ValueError("minDistance cannot be negative.")
        if self.min_distance >= self.max_distance:
            raise ValueError("minDistance must be lower than maxDistance.")
        if self.price < 0:
            raise ValueError("price cannot be negative.")
        return self


class FreeShippingCityDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    city: str
    state: str
    active: bool = True
    min_order_amount: Decimal = Decimal("0.00")

    @field_validator("min_order_amount", mode="before")
    @classmethod
    def reject_floats(cls, v):
        return _reject_float(v)

    @field_validator("city")
    @classmethod
    def city_required(cls, v: str) -> str:
        v = " ".join(v.split())
        if not v:
            raise ValueError("city is required.")
        return v

    @field_validator("state")
    @classmethod
    def state_is_uf(cls, v: str) -> str:
        v = v.strip().upper()
        if len(v) != 2 or not v.isalpha():
            raise ValueError("state must be a two-letter code.")
        return v
