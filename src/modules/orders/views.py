"""Order API views.

``OrderViewSet`` is the public storefront surface (checkout and
tracking); ``AdminOrderViewSet`` is the staff back office.  Both expose
the ``OrderService`` via DRF ViewSets.  Domain exceptions are caught and
translated into HTTP status codes; the views never swallow generic
exceptions.
"""

from __future__ import annotations

from uuid import UUID

from django_filters.rest_framework import DjangoFilterBackend
from pydantic import ValidationError as PydanticValidationError
from rest_framework import status
from rest_framework.decorators import action
from rest_framework.filters import OrderingFilter, SearchFilter
from rest_framework.permissions import AllowAny, IsAdminUser
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.throttling import BaseThrottle
from rest_framework.viewsets import GenericViewSet

from modules.core.exceptions import error_response, validation_error_response
from modules.core.pagination import StandardResultsSetPagination
from modules.deliveries.services import build_delivery_service
from modules.orders.constants import OrderStatus
from modules.orders.dtos import (
    AddressDTO,
    CheckoutDTO,
    CheckoutItemDTO,
    CustomerDTO,
    TrackingQueryDTO,
)
from modules.orders.exceptions import OrderNotFound
from modules.orders.filters import OrderFilter
from modules.orders.models import Order
from modules.orders.serializers import (
    AssignDriverSerializer,
    CancelSerializer,
    CheckoutResultSerializer,
    CheckoutSerializer,
    OrderListSerializer,
    OrderSerializer,
    OrderUpdateSerializer,
    TrackingSerializer,
)
from modules.orders.services import build_order_service
from modules.shipping.exceptions import NoRateConfigured, OutOfRange
from shared.domain.exceptions import (
    ConflictError,
    DomainError,
    NotFoundError,
    ShippingRejected,
    UpstreamError,
    ValidationError,
)


class OrderViewSet(GenericViewSet):
    """Public checkout and tracking.

    Does **not** extend ``ModelViewSet``; all ORM access goes through
    the service/repository layer.
    """

    queryset = Order.objects.none()
    permission_classes = [AllowAny]
    serializer_class = CheckoutSerializer

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._service = build_order_service()

    def get_throttles(self) -> list[BaseThrottle]:
        """Define escopos de throttling por ação."""
        throttle_scope: str | None
        if self.action == "create":
            throttle_scope = "order_creation"
        elif self.action == "track":
            throttle_scope = "order_tracking"
        else:
            throttle_scope = None
        self.throttle_scope = throttle_scope
        return super().get_throttles()

    # ------------------------------------------------------------------
    # Checkout
    # ------------------------------------------------------------------

    def create(self, request: Request) -> Response:
        """POST /api/v1/orders/

        Supports idempotency via the ``Idempotency-Key`` header.
        Returns 200 if the key was already used, 201 for new orders.
        """
        serializer = CheckoutSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            dto = CheckoutDTO(
                customer=CustomerDTO(**data["customer"]),
                address=AddressDTO(**data["address"]),
                items=[
                    CheckoutItemDTO(
                        product_id=item["product_id"],
                        quantity=item["quantity"],
                    )
                    for item in data["items"]
                ],
                payment_method=data["payment_method"],
                notes=data.get("notes", ""),
                idempotency_key=request.headers.get("Idempotency-Key"),
            )
        except PydanticValidationError as exc:
            return validation_error_response(exc)

        try:
            result = self._service.checkout(dto)
        except (OutOfRange, NoRateConfigured) as exc:
            distance = str(exc.distance_km) if exc.distance_km is not None else None
            return error_response(exc, distance_km=distance)
        except (ValidationError, ShippingRejected, UpstreamError) as exc:
            return error_response(exc)

        out = CheckoutResultSerializer(result)
        http_status = status.HTTP_200_OK if result.replayed else status.HTTP_201_CREATED
        return Response(out.data, status=http_status)

    # ------------------------------------------------------------------
    # Tracking
    # ------------------------------------------------------------------

    @action(detail=False, methods=["get"], url_path=r"track/(?P<code>[^/.]+)")
    def track(self, request: Request, code: str | None = None) -> Response:
        """GET /api/v1/orders/track/{code}/?email=&phone="""
        query = TrackingQueryDTO(
            code=code or "",
            email=request.query_params.get("email") or None,
            phone=request.query_params.get("phone") or None,
        )
        try:
            order = self._service.track(query)
        except (ValidationError, OrderNotFound) as exc:
            return error_response(exc)
        return Response(TrackingSerializer(order).data)


class AdminOrderViewSet(GenericViewSet):
    """Staff order management: list, detail, status/notes, cancel, assign."""

    queryset = Order.objects.none()
    permission_classes = [IsAdminUser]
    serializer_class = OrderSerializer
    filterset_class = OrderFilter
    search_fields = ["code", "customer_name", "customer_email"]
    ordering_fields = ["created_at", "total", "status"]
    ordering = ["-created_at", "-id"]
    filter_backends = [DjangoFilterBackend, SearchFilter, OrderingFilter]

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._service = build_order_service()

    def get_queryset(self):
        return self._service.list_orders()

    def _actor(self, request: Request) -> str:
        return f"admin:{request.user.get_username()}"

    # ------------------------------------------------------------------
    # List / Retrieve
    # ------------------------------------------------------------------

    def list(self, request: Request) -> Response:
        """GET /api/v1/admin/orders/

        Filtering (status, payment status, date range, total range) is
        handled by ``OrderFilter``; search covers code and customer.
        Results are paginated.
        """
        queryset = self.filter_queryset(self.get_queryset())

        paginator = StandardResultsSetPagination()
        page = paginator.paginate_queryset(queryset, request)
        serializer = OrderListSerializer(page, many=True)
        return paginator.get_paginated_response(serializer.data)

    def retrieve(self, request: Request, pk: str | None = None) -> Response:
        """GET /api/v1/admin/orders/{pk}/"""
        try:
            order = self._service.get_order(pk or "")
        except OrderNotFound as exc:
            return error_response(exc)
        return Response(OrderSerializer(order).data)

    # ------------------------------------------------------------------
    # Status / notes / offline payment
    # ------------------------------------------------------------------

    def partial_update(self, request: Request, pk: str | None = None) -> Response:
        """PATCH /api/v1/admin/orders/{pk}/

        Accepts ``status``, ``notes`` and (offline methods only)
        ``payment_status``.  Cancellations go through
        ``POST /admin/orders/{id}/cancel/``.
        """
        serializer = OrderUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        if data.get("status") == OrderStatus.CANCELADO:
            return Response(
                {
                    "detail": "Use the /cancel/ endpoint for cancellations.",
                    "code": "validation_error",
                },
                status=status.HTTP_400_BAD_REQUEST,
            )

        try:
            order_id = _parse_uuid(pk)
            actor = self._actor(request)
            order = None
            if "status" in data:
                order = self._service.update_status(
                    order_id, data["status"], notes=data.get("notes", ""), actor=actor
                )
            elif "notes" in data:
                order = self._service.update_notes(order_id, data["notes"])
            if "payment_status" in data:
                order = self._service.set_payment_status(
                    order_id, data["payment_status"], actor=actor
                )
        except (ValidationError, NotFoundError, ConflictError) as exc:
            return error_response(exc)

        return Response(OrderSerializer(order).data)

    # ------------------------------------------------------------------
    # Cancel (dedicated action)
    # ------------------------------------------------------------------

    @action(detail=True, methods=["post"])
    def cancel(self, request: Request, pk: str | None = None) -> Response:
        """POST /api/v1/admin/orders/{pk}/cancel/

        Cancels an order and releases its active delivery assignment.
        """
        serializer = CancelSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            order = self._service.cancel_order(
                _parse_uuid(pk),
                notes=serializer.validated_data["notes"],
                actor=self._actor(request),
            )
        except (ValidationError, NotFoundError, ConflictError) as exc:
            return error_response(exc)
        return Response(OrderSerializer(order).data)

    # ------------------------------------------------------------------
    # Manual assignment
    # ------------------------------------------------------------------

    @action(detail=True, methods=["post", "delete"])
    def assign(self, request: Request, pk: str | None = None) -> Response:
        """POST/DELETE /api/v1/admin/orders/{pk}/assign/

        POST assigns (or reassigns) a driver; an ``EM_ROTA`` holder is
        replaced only with ``override=true``.  DELETE releases the
        active assignment.
        """
        deliveries = build_delivery_service()
        try:
            order_id = _parse_uuid(pk)
            if request.method == "DELETE":
                released = deliveries.unassign(order_id, actor=self._actor(request))
                order = self._service.get_order(str(order_id))
                body = OrderSerializer(order).data
                if released is None:
                    body = {**body, "message": "Pedido não possui entregador ativo."}
                return Response(body)

            serializer = AssignDriverSerializer(data=request.data)
            serializer.is_valid(raise_exception=True)
            deliveries.assign(
                order_id,
                serializer.validated_data["driver_id"],
                override=serializer.validated_data["override"],
                actor=self._actor(request),
            )
            order = self._service.get_order(str(order_id))
        except DomainError as exc:
            return error_response(exc)
        return Response(OrderSerializer(order).data)


def _parse_uuid(value: str | None) -> UUID:
    try:
        return UUID(str(value))
    except ValueError as exc:
        raise ValidationError("Invalid order ID format.") from exc
