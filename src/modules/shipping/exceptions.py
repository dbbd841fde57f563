"""Shipping domain exceptions.

Every rejection blocks checkout: no order is created and no charge is
attempted when one of these is raised.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Optional

from shared.domain.exceptions import (
    ConflictError,
    NotFoundError,
    ShippingRejected,
    UpstreamError,
    ValidationError,
)


class InvalidPostalCode(ValidationError):
    code = "invalid_postal_code"
    default_message = "CEP inválido."


class PostalCodeNotFound(ShippingRejected):
    code = "postal_code_not_found"
    default_message = "CEP não encontrado ou inválido."


class OutOfRange(ShippingRejected):
    """Destination is farther than ``ShippingConfig.max_distance_km``."""

    code = "out_of_range"
    default_message = "Fora da área de entrega."

    def __init__(
        self, message: Optional[str] = None, distance_km: Optional[Decimal] = None
    ) -> None:
        super().__init__(message)
        self.distance_km = distance_km


class NoRateConfigured(ShippingRejected):
    """No active rate interval contains the computed distance."""

    code = "no_rate_configured"
    default_message = "Frete não configurado para esta distância."

    def __init__(
        self, message: Optional[str] = None, distance_km: Optional[Decimal] = None
    ) -> None:
        super().__init__(message)
        self.distance_km = distance_km


class BelowMinimum(ShippingRejected):
    """Cart subtotal is below the global checkout minimum."""

    code = "below_minimum"
    default_message = "Valor abaixo do pedido mínimo."


class GeocoderUnavailable(UpstreamError):
    code = "geocoder_unavailable"
    default_message = "Serviço de localização indisponível. Tente novamente."


class OverlappingRate(ValidationError):
    code = "overlapping_rate"
    default_message = "A faixa de distância sobrepõe outra faixa ativa."


class ShippingRateNotFound(NotFoundError):
    default_message = "Faixa de frete não encontrada."


class FreeShippingCityNotFound(NotFoundError):
    default_message = "Cidade com frete grátis não encontrada."


class DuplicateFreeShippingCity(ConflictError):
    code = "duplicate_free_city"
    default_message = "Esta cidade já possui regra de frete grátis."
