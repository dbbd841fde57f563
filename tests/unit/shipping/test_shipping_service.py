"""Unit tests for ShippingService (quotes and admin tables).

Covers:
- Quotes read the configuration afresh on every call.
- Free-shipping destinations are never geocoded.
- Rate writes reject overlapping active intervals.
- Free-shipping cities are unique per (city, state).
- DTO validation (floats and inverted intervals refused).
"""

from __future__ import annotations

from decimal import Decimal

import pytest
from pydantic import ValidationError as PydanticValidationError

from modules.shipping.dtos import (
    FreeShippingCityDTO,
    ShippingConfigUpdateDTO,
    ShippingRateDTO,
)
from modules.shipping.exceptions import (
    BelowMinimum,
    DuplicateFreeShippingCity,
    InvalidPostalCode,
    OverlappingRate,
    ShippingRateNotFound,
)
from modules.shipping.models import ShippingConfig, ShippingRate
from modules.shipping.services import build_shipping_service

pytestmark = pytest.mark.unit


@pytest.fixture()
def service(fake_geocoder, shipping_setup):
    return build_shipping_service(geocoder=fake_geocoder)


class TestQuote:
    def test_quote_by_distance(self, service):
        quote = service.quote("14090-000", Decimal("50.00"))
        assert quote.price == Decimal("12.00")
        assert quote.distance_km == Decimal("12.00")

    def test_config_change_applies_to_next_quote(self, service):
        service.quote("14010000", Decimal("20.00"))
        service.update_config(ShippingConfigUpdateDTO(min_order_amount=Decimal("25.00")))

        with pytest.raises(BelowMinimum):
            service.quote("14010000", Decimal("20.00"))

    def test_free_city_skips_geocoding(self, service, fake_geocoder):
        service.create_free_city(FreeShippingCityDTO(city="Ribeirão Preto", state="SP"))

        quote = service.quote("14010000", Decimal("10.00"))

        assert quote.free_shipping is True
        assert quote.price == Decimal("0.00")
        assert fake_geocoder.coordinate_calls == 0

    def test_inactive_free_city_ignored(self, service):
        row = service.create_free_city(FreeShippingCityDTO(city="Ribeirão Preto", state="SP"))
        service.deactivate_free_city(row.id)

        assert service.quote("14010000", Decimal("10.00")).free_shipping is False

    def test_malformed_postal_code(self, service):
        with pytest.raises(InvalidPostalCode):
            service.quote("1401", Decimal("10.00"))


class TestConfig:
    def test_defaults_before_first_save(self, fake_geocoder, settings):
        settings.SHIPPING_DEFAULT_MAX_DISTANCE_KM = "55"
        current = build_shipping_service(geocoder=fake_geocoder).get_config()
        assert current.max_distance_km == Decimal("55")

    def test_update_keeps_single_row(self, service):
        service.update_config(ShippingConfigUpdateDTO(max_distance_km=Decimal("30")))
        service.update_config(ShippingConfigUpdateDTO(min_order_amount=Decimal("15")))

        assert ShippingConfig.objects.count() == 1
        current = service.get_config()
        assert current.max_distance_km == Decimal("30.00")
        assert current.min_order_amount == Decimal("15.00")


class TestRates:
    def test_overlapping_active_rate_rejected(self, service):
        with pytest.raises(OverlappingRate):
            service.create_rate(
                ShippingRateDTO(
                    min_distance=Decimal("8"), max_distance=Decimal("15"), price=Decimal("9")
                )
            )

    def test_adjacent_rate_accepted(self, service):
        rate = service.create_rate(
            ShippingRateDTO(
                min_distance=Decimal("20"), max_distance=Decimal("40"), price=Decimal("20")
            )
        )
        assert rate.active is True
        assert service.quote("14800000", Decimal("50.00")).price == Decimal("20.00")

    def test_inactive_rate_may_overlap(self, service):
        rate = service.create_rate(
            ShippingRateDTO(
                min_distance=Decimal("0"),
                max_distance=Decimal("40"),
                price=Decimal("1"),
                active=False,
            )
        )
        assert rate.active is False

    def test_update_excludes_itself_from_overlap(self, service):
        rate = ShippingRate.objects.get(min_distance=Decimal("5.00"))
        updated = service.update_rate(
            rate.id,
            ShippingRateDTO(
                min_distance=Decimal("5"), max_distance=Decimal("10"), price=Decimal("9.50")
            ),
        )
        assert updated.price == Decimal("9.50")

    def test_deactivate_keeps_history(self, service):
        rate = ShippingRate.objects.get(min_distance=Decimal("10.00"))
        service.deactivate_rate(rate.id)

        rate.refresh_from_db()
        assert rate.active is False
        assert ShippingRate.objects.count() == 3

    def test_unknown_rate(self, service):
        from uuid import uuid4

        with pytest.raises(ShippingRateNotFound):
            service.get_rate(uuid4())


class TestFreeCities:
    def test_duplicate_city_rejected(self, service):
        service.create_free_city(FreeShippingCityDTO(city="Ribeirão Preto", state="SP"))
        with pytest.raises(DuplicateFreeShippingCity):
            service.create_free_city(FreeShippingCityDTO(city="Ribeirão  Preto", state="sp"))


class TestDtos:
    def test_rate_rejects_float(self):
        with pytest.raises(PydanticValidationError):
            ShippingRateDTO(min_distance=0.0, max_distance=Decimal("5"), price=Decimal("5"))

    def test_rate_rejects_inverted_interval(self):
        with pytest.raises(PydanticValidationError):
            ShippingRateDTO(
                min_distance=Decimal("5"), max_distance=Decimal("5"), price=Decimal("5")
            )

    def test_config_radius_must_be_positive(self):
        with pytest.raises(PydanticValidationError):
            ShippingConfigUpdateDTO(max_distance_km=Decimal("0"))

    def test_free_city_state_normalised(self):
        dto = FreeShippingCityDTO(city=" Ribeirão   Preto ", state="sp")
        assert dto.city == "Ribeirão Preto"
        assert dto.state == "SP"
