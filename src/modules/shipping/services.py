"""Shipping service layer.

Wraps the pure ``calculate_quote`` with its I/O: resolving the postal
code, then reading the current configuration, rate tiers and
free-shipping rules.  Also hosts the admin use cases that maintain those
tables; rate writes reject overlapping active intervals.
"""

from __future__ import annotations

from decimal import Decimal
from typing import List, Optional
from uuid import UUID

import structlog
from django.db import transaction

from modules.shipping.calculator import (
    Destination,
    ShippingQuote,
    ShippingSettings,
    calculate_quote,
    match_free_city,
)
from modules.shipping.dtos import (
    FreeShippingCityDTO,
    ShippingConfigUpdateDTO,
    ShippingRateDTO,
)
from modules.shipping.exceptions import (
    DuplicateFreeShippingCity,
    FreeShippingCityNotFound,
    OverlappingRate,
    ShippingRateNotFound,
)
from modules.shipping.geocoding import IGeocoder, ViaCepNominatimGeocoder
from modules.shipping.models import FreeShippingCity, ShippingConfig, ShippingRate
from modules.shipping.repositories.django_repository import (
    FreeShippingCityDjangoRepository,
    ShippingConfigProvider,
    ShippingRateDjangoRepository,
)
from modules.shipping.repositories.interfaces import (
    IFreeShippingCityRepository,
    IShippingConfigProvider,
    IShippingRateRepository,
)
from shared.domain.exceptions import ShippingRejected
from shared.domain.money import to_money

logger = structlog.get_logger(__name__)


class ShippingService:
    def __init__(
        self,
        config_provider: IShippingConfigProvider,
        rate_repository: IShippingRateRepository,
        free_city_repository: IFreeShippingCityRepository,
        geocoder: IGeocoder,
    ) -> None:
        self._config = config_provider
        self._rates = rate_repository
        self._free_cities = free_city_repository
        self._geocoder = geocoder

    # ------------------------------------------------------------------
    # Quotes
    # ------------------------------------------------------------------

    def quote(self, postal_code: str, subtotal: Decimal) -> ShippingQuote:
        """Price shipping for a cart going to *postal_code*.

        Called while the customer types and once more by checkout; every
        call reads the configuration afresh.

        Raises:
            InvalidPostalCode: malformed CEP.
            ShippingRejected: out of range, no rate, below minimum or
                unknown CEP.
            UpstreamError: the geocoder failed or timed out.
        """
        subtotal = to_money(subtotal)
        log = logger.bind(subtotal=str(subtotal))

        address = self._geocoder.lookup(postal_code)
        free_rules = self._free_cities.active_rules()

        coordinates = None
        if match_free_city(address.city, address.state, subtotal, free_rules) is None:
            coordinates = self._geocoder.coordinates_for(address)

        destination = Destination(
            postal_code=address.postal_code,
            city=address.city,
            state=address.state,
            coordinates=coordinates,
        )
        try:
            quote = calculate_quote(
                destination,
                subtotal,
                self._config.current(),
                self._rates.active_tiers(),
                free_rules,
            )
        except ShippingRejected as exc:
            log.info(
                "shipping.quote_rejected",
                reason=exc.code,
                city=address.city,
                state=address.state,
            )
            raise

        log.info(
            "shipping.quote_computed",
            price=str(quote.price),
            distance_km=str(quote.distance_km) if quote.distance_km is not None else None,
            free_shipping=quote.free_shipping,
        )
        return quote

    # ------------------------------------------------------------------
    # Configuration (admin)
    # ------------------------------------------------------------------

    def get_config(self) -> ShippingSettings:
        return self._config.current()

    @transaction.atomic
    def update_config(self, dto: ShippingConfigUpdateDTO) -> ShippingConfig:
        row = self._config.get_for_update()
        if dto.max_distance_km is not None:
            row.max_distance_km = dto.max_distance_km
        if dto.min_order_amount is not None:
            row.min_order_amount = to_money(dto.min_order_amount)
        row.save()
        logger.info(
            "shipping.config_updated",
            max_distance_km=str(row.max_distance_km),
            min_order_amount=str(row.min_order_amount),
        )
        return row

    # ------------------------------------------------------------------
    # Rate tiers (admin)
    # ------------------------------------------------------------------

    def list_rates(self, include_inactive: bool = True) -> List[ShippingRate]:
        return self._rates.list(None if include_inactive else {"active": True})

    def get_rate(self, rate_id: UUID) -> ShippingRate:
        rate = self._rates.get_by_id(str(rate_id))
        if rate is None:
            raise ShippingRateNotFound()
        return rate

    @transaction.atomic
    def create_rate(self, dto: ShippingRateDTO) -> ShippingRate:
        if dto.active:
            self._ensure_no_overlap(dto.min_distance, dto.max_distance, None)
        rate = ShippingRate(
            min_distance=dto.min_distance,
            max_distance=dto.max_distance,
            price=to_money(dto.price),
            active=dto.active,
        )
        return self._rates.save(rate)

    @transaction.atomic
    def update_rate(self, rate_id: UUID, dto: ShippingRateDTO) -> ShippingRate:
        rate = self.get_rate(rate_id)
        if dto.active:
            self._ensure_no_overlap(dto.min_distance, dto.max_distance, rate.id)
        rate.min_distance = dto.min_distance
        rate.max_distance = dto.max_distance
        rate.price = to_money(dto.price)
        rate.active = dto.active
        return self._rates.save(rate)

    @transaction.atomic
    def deactivate_rate(self, rate_id: UUID) -> ShippingRate:
        rate = self.get_rate(rate_id)
        rate.active = False
        return self._rates.save(rate)

    def _ensure_no_overlap(
        self, min_distance: Decimal, max_distance: Decimal, exclude_id: Optional[UUID]
    ) -> None:
        clashes = self._rates.overlapping(min_distance, max_distance, exclude_id)
        if clashes:
            clash = clashes[0]
            logger.warning(
                "shipping.rate_overlap_rejected",
                min_distance=str(min_distance),
                max_distance=str(max_distance),
                clashing_rate_id=str(clash.id),
            )
            raise OverlappingRate(
                f"A faixa [{min_distance}, {max_distance}) sobrepõe a faixa "
                f"[{clash.min_distance}, {clash.max_distance})."
            )

    # ------------------------------------------------------------------
    # Free-shipping cities (admin)
    # ------------------------------------------------------------------

    def list_free_cities(self) -> List[FreeShippingCity]:
        return self._free_cities.list()

    def get_free_city(self, free_city_id: UUID) -> FreeShippingCity:
        row = self._free_cities.get_by_id(str(free_city_id))
        if row is None:
            raise FreeShippingCityNotFound()
        return row

    @transaction.atomic
    def create_free_city(self, dto: FreeShippingCityDTO) -> FreeShippingCity:
        if self._free_cities.get_by_city(dto.city, dto.state) is not None:
            raise DuplicateFreeShippingCity()
        row = FreeShippingCity(
            city=dto.city,
            state=dto.state,
            active=dto.active,
            min_order_amount=to_money(dto.min_order_amount),
        )
        return self._free_cities.save(row)

    @transaction.atomic
    def update_free_city(
        self, free_city_id: UUID, dto: FreeShippingCityDTO
    ) -> FreeShippingCity:
        row = self.get_free_city(free_city_id)
        existing = self._free_cities.get_by_city(dto.city, dto.state)
        if existing is not None and existing.id != row.id:
            raise DuplicateFreeShippingCity()
        row.city = dto.city
        row.state = dto.state
        row.active = dto.active
        row.min_order_amount = to_money(dto.min_order_amount)
        return self._free_cities.save(row)

    @transaction.atomic
    def deactivate_free_city(self, free_city_id: UUID) -> FreeShippingCity:
        row = self.get_free_city(free_city_id)
        row.active = False
        return self._free_cities.save(row)


def build_shipping_service(geocoder: Optional[IGeocoder] = None) -> ShippingService:
    return ShippingService(
        config_provider=ShippingConfigProvider(),
        rate_repository=ShippingRateDjangoRepository(),
        free_city_repository=FreeShippingCityDjangoRepository(),
        geocoder=geocoder or ViaCepNominatimGeocoder.from_settings(),
    )
