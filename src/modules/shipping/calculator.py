"""Shipping price computation.

``calculate_quote`` is a pure function: all inputs (destination, subtotal,
configuration, rates, free-shipping rules) are passed in and nothing is
read or written elsewhere.  It is called repeatedly while the customer
types an address and once more at order creation; that last call is the
only price the order trusts.

Rules, in order:

1. Active free-shipping city matching (city, state) with subtotal at or
   above its minimum → price 0, ``free_shipping=True``.
2. Great-circle distance from the warehouse to the destination.
3. Distance above ``max_distance_km`` → ``OutOfRange``.
4. Active rate whose ``[min_distance, max_distance)`` contains the distance;
   overlapping rates resolve to the lowest ``min_distance``.  None →
   ``NoRateConfigured``.
5. Subtotal below the global minimum → ``BelowMinimum``.
"""

from __future__ import annotations

import math
import unicodedata
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional, Sequence
from uuid import UUID

from modules.shipping.exceptions import (
    BelowMinimum,
    NoRateConfigured,
    OutOfRange,
    PostalCodeNotFound,
)
from shared.domain.money import ZERO, to_money

EARTH_RADIUS_KM = 6371.0
KM_PLACES = Decimal("0.01")


@dataclass(frozen=True)
class Coordinates:
    lat: float
    lng: float


@dataclass(frozen=True)
class Destination:
    postal_code: str
    city: str
    state: str
    coordinates: Optional[Coordinates] = None


@dataclass(frozen=True)
class RateTier:
    id: UUID
    min_distance: Decimal
    max_distance: Decimal
    price: Decimal

    def contains(self, distance_km: Decimal) -> bool:
        return self.min_distance <= distance_km < self.max_distance


@dataclass(frozen=True)
class FreeCityRule:
    city: str
    state: str
    min_order_amount: Decimal = ZERO

    def matches(self, city: str, state: str) -> bool:
        return normalize_city(self.city) == normalize_city(city) and (
            self.state.strip().upper() == state.strip().upper()
        )

    def is_satisfied_by(self, subtotal: Decimal) -> bool:
        return self.min_order_amount <= 0 or subtotal >= self.min_order_amount


@dataclass(frozen=True)
class ShippingSettings:
    origin: Coordinates
    max_distance_km: Decimal
    min_order_amount: Decimal


@dataclass(frozen=True)
class ShippingQuote:
    price: Decimal
    distance_km: Optional[Decimal]
    free_shipping: bool
    message: str = ""
    rate_id: Optional[UUID] = None


def normalize_city(name: str) -> str:
    """Case-folded city name with surrounding/multiple spaces collapsed."""
    return unicodedata.normalize("NFC", " ".join(name.split())).casefold()


def haversine_km(a: Coordinates, b: Coordinates) -> float:
    d_lat = math.radians(b.lat - a.lat)
    d_lng = math.radians(b.lng - a.lng)
    h = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(a.lat))
        * math.cos(math.radians(b.lat))
        * math.sin(d_lng / 2) ** 2
    )
    return 2 * EARTH_RADIUS_KM * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def distance_between(a: Coordinates, b: Coordinates) -> Decimal:
    """Distance in km as a two-place ``Decimal``."""
    return Decimal(repr(haversine_km(a, b))).quantize(KM_PLACES, rounding=ROUND_HALF_UP)


def match_free_city(
    city: str, state: str, subtotal: Decimal, free_cities: Sequence[FreeCityRule]
) -> Optional[FreeCityRule]:
    """Return the first rule that waives shipping for *city*/*state*."""
    if not city or not state:
        return None
    for rule in free_cities:
        if rule.matches(city, state) and rule.is_satisfied_by(subtotal):
            return rule
    return None


def select_rate(distance_km: Decimal, rates: Sequence[RateTier]) -> Optional[RateTier]:
    """Lowest-``min_distance`` rate whose interval contains *distance_km*."""
    candidates = [rate for rate in rates if rate.contains(distance_km)]
    if not candidates:
        return None
    return min(candidates, key=lambda rate: (rate.min_distance, rate.max_distance))


def calculate_quote(
    destination: Destination,
    subtotal: Decimal,
    settings: ShippingSettings,
    rates: Sequence[RateTier],
    free_cities: Sequence[FreeCityRule] = (),
) -> ShippingQuote:
    """Price shipping to *destination* for a cart worth *subtotal*.

    Raises:
        PostalCodeNotFound: the destination has no coordinates and no
            free-shipping rule applies.
        OutOfRange: destination beyond the delivery radius.
        NoRateConfigured: no active rate covers the distance.
        BelowMinimum: subtotal below the global checkout minimum.
    """
    subtotal = to_money(subtotal)

    free_rule = match_free_city(
        destination.city, destination.state, subtotal, free_cities
    )
    if free_rule is not None:
        distance = (
            distance_between(settings.origin, destination.coordinates)
            if destination.coordinates
            else None
        )
        return ShippingQuote(
            price=ZERO,
            distance_km=distance,
            free_shipping=True,
            message=f"Frete grátis para {free_rule.city}/{free_rule.state}",
        )

    if destination.coordinates is None:
        raise PostalCodeNotFound()

    distance = distance_between(settings.origin, destination.coordinates)
    if distance > settings.max_distance_km:
        raise OutOfRange(
            f"Entregamos apenas em um raio de {settings.max_distance_km}km. "
            f"Sua localização está a {distance}km.",
            distance_km=distance,
        )

    rate = select_rate(distance, rates)
    if rate is None:
        raise NoRateConfigured(distance_km=distance)

    if subtotal < settings.min_order_amount:
        raise BelowMinimum(f"Pedido mínimo é R$ {to_money(settings.min_order_amount)}")

    return ShippingQuote(
        price=to_money(rate.price),
        distance_km=distance,
        free_shipping=False,
        message=f"Entrega a {distance}km",
        rate_id=rate.id,
    )
