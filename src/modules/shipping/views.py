"""Shipping API views.

``QuoteView`` is public: the storefront calls it (debounced) while the
customer types the postal code.  The configuration, rate and
free-shipping tables are staff-only.
"""

from __future__ import annotations

from uuid import UUID

from pydantic import ValidationError as PydanticValidationError
from rest_framework import status
from rest_framework.permissions import AllowAny, IsAdminUser
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView
from rest_framework.viewsets import GenericViewSet

from modules.core.exceptions import error_response, validation_error_response
from modules.shipping.dtos import (
    FreeShippingCityDTO,
    ShippingConfigUpdateDTO,
    ShippingRateDTO,
)
from modules.shipping.exceptions import (
    FreeShippingCityNotFound,
    NoRateConfigured,
    OutOfRange,
    ShippingRateNotFound,
)
from modules.shipping.serializers import (
    FreeShippingCityInputSerializer,
    FreeShippingCitySerializer,
    QuoteRequestSerializer,
    ShippingConfigInputSerializer,
    ShippingQuoteSerializer,
    ShippingRateInputSerializer,
    ShippingRateSerializer,
    ShippingSettingsSerializer,
)
from modules.shipping.services import build_shipping_service
from shared.domain.exceptions import (
    ConflictError,
    ShippingRejected,
    UpstreamError,
    ValidationError,
)


class QuoteView(APIView):
    """POST /api/v1/shipping/quote/"""

    permission_classes = [AllowAny]
    authentication_classes: list = []
    throttle_scope = "shipping_quote"

    def post(self, request: Request) -> Response:
        serializer = QuoteRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        service = build_shipping_service()
        try:
            quote = service.quote(data["postal_code"], data["subtotal"])
        except (OutOfRange, NoRateConfigured) as exc:
            distance = str(exc.distance_km) if exc.distance_km is not None else None
            return error_response(exc, distance_km=distance)
        except (ValidationError, ShippingRejected, UpstreamError) as exc:
            return error_response(exc)

        return Response(ShippingQuoteSerializer(quote).data)


class ShippingConfigView(APIView):
    """GET/PATCH /api/v1/admin/shipping/config/"""

    permission_classes = [IsAdminUser]

    def get(self, request: Request) -> Response:
        current = build_shipping_service().get_config()
        return Response(ShippingSettingsSerializer(current).data)

    def patch(self, request: Request) -> Response:
        serializer = ShippingConfigInputSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            dto = ShippingConfigUpdateDTO(**serializer.validated_data)
        except PydanticValidationError as exc:
            return validation_error_response(exc)

        row = build_shipping_service().update_config(dto)
        return Response(ShippingSettingsSerializer(row).data)


class ShippingRateViewSet(GenericViewSet):
    """Staff CRUD over rate tiers.  ``DELETE`` deactivates (history kept)."""

    permission_classes = [IsAdminUser]
    serializer_class = ShippingRateSerializer

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._service = build_shipping_service()

    def list(self, request: Request) -> Response:
        rates = self._service.list_rates()
        return Response(ShippingRateSerializer(rates, many=True).data)

    def retrieve(self, request: Request, pk: str | None = None) -> Response:
        try:
            rate = self._service.get_rate(_parse_uuid(pk))
        except ShippingRateNotFound as exc:
            return error_response(exc)
        return Response(ShippingRateSerializer(rate).data)

    def create(self, request: Request) -> Response:
        serializer = ShippingRateInputSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            dto = ShippingRateDTO(**serializer.validated_data)
        except PydanticValidationError as exc:
            return validation_error_response(exc)

        try:
            rate = self._service.create_rate(dto)
        except ValidationError as exc:
            return error_response(exc)
        return Response(ShippingRateSerializer(rate).data, status=status.HTTP_201_CREATED)

    def update(self, request: Request, pk: str | None = None) -> Response:
        serializer = ShippingRateInputSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            dto = ShippingRateDTO(**serializer.validated_data)
        except PydanticValidationError as exc:
            return validation_error_response(exc)

        try:
            rate = self._service.update_rate(_parse_uuid(pk), dto)
        except (ShippingRateNotFound, ValidationError) as exc:
            return error_response(exc)
        return Response(ShippingRateSerializer(rate).data)

    def destroy(self, request: Request, pk: str | None = None) -> Response:
        try:
            rate = self._service.deactivate_rate(_parse_uuid(pk))
        except ShippingRateNotFound as exc:
            return error_response(exc)
        return Response(ShippingRateSerializer(rate).data)


class FreeShippingCityViewSet(GenericViewSet):
    """Staff CRUD over free-shipping cities.  ``DELETE`` deactivates."""

    permission_classes = [IsAdminUser]
    serializer_class = FreeShippingCitySerializer

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._service = build_shipping_service()

    def list(self, request: Request) -> Response:
        rows = self._service.list_free_cities()
        return Response(FreeShippingCitySerializer(rows, many=True).data)

    def retrieve(self, request: Request, pk: str | None = None) -> Response:
        try:
            row = self._service.get_free_city(_parse_uuid(pk))
        except FreeShippingCityNotFound as exc:
            return error_response(exc)
        return Response(FreeShippingCitySerializer(row).data)

    def create(self, request: Request) -> Response:
        serializer = FreeShippingCityInputSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            dto = FreeShippingCityDTO(**serializer.validated_data)
        except PydanticValidationError as exc:
            return validation_error_response(exc)

        try:
            row = self._service.create_free_city(dto)
        except ConflictError as exc:
            return error_response(exc)
        return Response(
            FreeShippingCitySerializer(row).data, status=status.HTTP_201_CREATED
        )

    def update(self, request: Request, pk: str | None = None) -> Response:
        serializer = FreeShippingCityInputSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            dto = FreeShippingCityDTO(**serializer.validated_data)
        except PydanticValidationError as exc:
            return validation_error_response(exc)

        try:
            row = self._service.update_free_city(_parse_uuid(pk), dto)
        except (FreeShippingCityNotFound, ConflictError) as exc:
            return error_response(exc)
        return Response(FreeShippingCitySerializer(row).data)

    def destroy(self, request: Request, pk: str | None = None) -> Response:
        try:
            row = self._service.deactivate_free_city(_parse_uuid(pk))
        except FreeShippingCityNotFound as exc:
            return error_response(exc)
        return Response(FreeShippingCitySerializer(row).data)


def _parse_uuid(pk: str | None) -> UUID:
    try:
        return UUID(str(pk))
    except ValueError as exc:
        raise ValidationError("Identificador inválido.") from exc
