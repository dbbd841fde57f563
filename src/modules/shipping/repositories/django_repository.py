"""Django ORM implementations of the shipping ports."""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict, List, Optional
from uuid import UUID

import structlog
from django.conf import settings
from django.core.exceptions import ValidationError

from modules.shipping.calculator import (
    Coordinates,
    FreeCityRule,
    RateTier,
    ShippingSettings,
)
from modules.shipping.models import FreeShippingCity, ShippingConfig, ShippingRate
from modules.shipping.repositories.interfaces import (
    IFreeShippingCityRepository,
    IShippingConfigProvider,
    IShippingRateRepository,
)

logger = structlog.get_logger(__name__)


def warehouse_origin() -> Coordinates:
    return Coordinates(
        lat=float(settings.WAREHOUSE_LATITUDE),
        lng=float(settings.WAREHOUSE_LONGITUDE),
    )


class ShippingConfigProvider(IShippingConfigProvider):
    """Reads the singleton ``ShippingConfig`` row on every call.

    Until an admin saves the configuration the defaults from settings
    (``SHIPPING_DEFAULT_*``) apply.
    """

    def current(self) -> ShippingSettings:
        row = ShippingConfig.objects.order_by("created_at").first()
        if row is None:
            return ShippingSettings(
                origin=warehouse_origin(),
                max_distance_km=_default_max_distance(),
                min_order_amount=_default_min_order(),
            )
        return ShippingSettings(
            origin=warehouse_origin(),
            max_distance_km=row.max_distance_km,
            min_order_amount=row.min_order_amount,
        )

    def get_for_update(self) -> ShippingConfig:
        row = ShippingConfig.objects.select_for_update().order_by("created_at").first()
        if row is None:
            row = ShippingConfig.objects.create(
                max_distance_km=_default_max_distance(),
                min_order_amount=_default_min_order(),
            )
            logger.info("shipping.config_initialized", config_id=str(row.id))
        return row


class ShippingRateDjangoRepository(IShippingRateRepository):
    def get_by_id(self, id: str) -> Optional[ShippingRate]:
        try:
            return ShippingRate.objects.filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def list(self, filters: Optional[Dict[str, Any]] = None) -> List[ShippingRate]:
        queryset = ShippingRate.objects.all()
        if filters:
            queryset = queryset.filter(**filters)
        return list(queryset)

    def save(self, entity: ShippingRate) -> ShippingRate:
        entity.save()
        logger.info("shipping.rate_saved", rate_id=str(entity.id), active=entity.active)
        return entity

    def active_tiers(self) -> List[RateTier]:
        return [
            RateTier(
                id=rate.id,
                min_distance=rate.min_distance,
                max_distance=rate.max_distance,
                price=rate.price,
            )
            for rate in ShippingRate.objects.filter(active=True).order_by(
                "min_distance", "created_at"
            )
        ]

    def overlapping(
        self, min_distance: Decimal, max_distance: Decimal, exclude_id: Optional[UUID]
    ) -> List[ShippingRate]:
        queryset = ShippingRate.objects.filter(
            active=True,
            min_distance__lt=max_distance,
            max_distance__gt=min_distance,
        )
        if exclude_id is not None:
            queryset = queryset.exclude(id=exclude_id)
        return list(queryset)


class FreeShippingCityDjangoRepository(IFreeShippingCityRepository):
    def get_by_id(self, id: str) -> Optional[FreeShippingCity]:
        try:
            return FreeShippingCity.objects.filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def list(self, filters: Optional[Dict[str, Any]] = None) -> List[FreeShippingCity]:
        queryset = FreeShippingCity.objects.all()
        if filters:
            queryset = queryset.filter(**filters)
        return list(queryset)

    def save(self, entity: FreeShippingCity) -> FreeShippingCity:
        entity.save()
        logger.info(
            "shipping.free_city_saved", free_city_id=str(entity.id), active=entity.active
        )
        return entity

    def active_rules(self) -> List[FreeCityRule]:
        return [
            FreeCityRule(
                city=row.city, state=row.state, min_order_amount=row.min_order_amount
            )
            for row in FreeShippingCity.objects.filter(active=True)
        ]

    def get_by_city(self, city: str, state: str) -> Optional[FreeShippingCity]:
        return FreeShippingCity.objects.filter(
            city__iexact=" ".join(city.split()), state=state.strip().upper()
        ).first()


def _default_max_distance() -> Decimal:
    return Decimal(str(settings.SHIPPING_DEFAULT_MAX_DISTANCE_KM))


def _default_min_order() -> Decimal:
    return Decimal(str(settings.SHIPPING_DEFAULT_MIN_ORDER_AMOUNT))
