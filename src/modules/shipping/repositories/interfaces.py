"""Shipping repository interfaces.

The calculator never touches the ORM: ``ShippingService`` reads the
configuration, rate tiers and free-shipping rules through these ports at
the start of every quote.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from decimal import Decimal
from typing import TYPE_CHECKING, List, Optional
from uuid import UUID

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from modules.shipping.calculator import FreeCityRule, RateTier, ShippingSettings
    from modules.shipping.models import FreeShippingCity, ShippingConfig, ShippingRate


class IShippingConfigProvider(ABC):
    """Reads the process-wide shipping configuration (never cached)."""

    @abstractmethod
    def current(self) -> ShippingSettings:
        """Settings in force right now, falling back to defaults."""

    @abstractmethod
    def get_for_update(self) -> ShippingConfig:
        """The singleton row, created with defaults if missing, locked."""


class IShippingRateRepository(IRepository["ShippingRate"]):
    @abstractmethod
    def active_tiers(self) -> List[RateTier]:
        """Active rate tiers, ordered by ``min_distance``."""

    @abstractmethod
    def overlapping(
        self, min_distance: Decimal, max_distance: Decimal, exclude_id: Optional[UUID]
    ) -> List[ShippingRate]:
        """Active rates whose interval intersects ``[min, max)``."""


class IFreeShippingCityRepository(IRepository["FreeShippingCity"]):
    @abstractmethod
    def active_rules(self) -> List[FreeCityRule]:
        """Active free-shipping rules."""

    @abstractmethod
    def get_by_city(self, city: str, state: str) -> Optional[FreeShippingCity]:
        """Exact (normalized) city/state lookup."""
