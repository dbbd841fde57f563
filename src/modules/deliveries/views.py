"""Driver delivery endpoints.

Drivers claim orders by scanning the pick-slip QR code, list the
deliveries they hold and advance them.  Manual (re)assignment by staff
lives on the admin order endpoints.
"""

from __future__ import annotations

from uuid import UUID

from rest_framework import status
from rest_framework.decorators import action
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.viewsets import GenericViewSet

from modules.core.exceptions import error_response
from modules.core.permissions import IsDriver
from modules.deliveries.models import DeliveryAssignment
from modules.deliveries.qrcode import OrderRef, parse_qr_payload
from modules.deliveries.serializers import (
    AdvanceSerializer,
    ClaimSerializer,
    DeliveryAssignmentSerializer,
)
from modules.deliveries.services import build_delivery_service
from shared.domain.exceptions import (
    ConflictError,
    NotFoundError,
    ValidationError,
)

_TRUTHY = {"1", "true", "yes", "on"}


class DeliveryViewSet(GenericViewSet):
    queryset = DeliveryAssignment.objects.none()
    permission_classes = [IsDriver]
    serializer_class = DeliveryAssignmentSerializer

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._service = build_delivery_service()

    def list(self, request: Request) -> Response:
        """GET /api/v1/deliveries/?include_terminal=true"""
        include_terminal = (
            request.query_params.get("include_terminal", "").lower() in _TRUTHY
        )
        assignments = self._service.list_for_driver(request.user, include_terminal)
        return Response(DeliveryAssignmentSerializer(assignments, many=True).data)

    def retrieve(self, request: Request, pk: str | None = None) -> Response:
        try:
            assignment = self._service.get_for_driver(_parse_uuid(pk), request.user)
        except (ValidationError, NotFoundError) as exc:
            return error_response(exc)
        return Response(DeliveryAssignmentSerializer(assignment).data)

    def partial_update(self, request: Request, pk: str | None = None) -> Response:
        """PATCH /api/v1/deliveries/{pk}/

        Only the holding driver may advance; ``ENTREGUE`` requires
        ``recipient_name``.
        """
        serializer = AdvanceSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        try:
            assignment = self._service.advance(
                _parse_uuid(pk),
                data["status"],
                request.user,
                recipient_name=data["recipient_name"],
                notes=data["notes"],
            )
        except (ValidationError, NotFoundError, ConflictError) as exc:
            return error_response(exc)
        return Response(DeliveryAssignmentSerializer(assignment).data)

    @action(detail=False, methods=["post"])
    def claim(self, request: Request) -> Response:
        """POST /api/v1/deliveries/claim/

        Re-claiming an order the driver already holds answers 200 with
        the same assignment.
        """
        serializer = ClaimSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        try:
            if data.get("order_ref"):
                ref = parse_qr_payload(data["order_ref"])
            else:
                ref = OrderRef(
                    order_id=data["order_id"],
                    order_code=data["order_code"].strip().upper(),
                )
            assignment, created = self._service.claim(ref, request.user)
        except (ValidationError, NotFoundError, ConflictError) as exc:
            return error_response(exc)

        return Response(
            {
                "message": "Entrega atribuída com sucesso"
                if created
                else "Entrega já atribuída a você",
                "assignment": DeliveryAssignmentSerializer(assignment).data,
            },
            status=status.HTTP_201_CREATED if created else status.HTTP_200_OK,
        )


def _parse_uuid(value: str | None) -> UUID:
    try:
        return UUID(str(value))
    except ValueError as exc:
        raise ValidationError("Invalid delivery ID format.") from exc
