"""Driver route endpoints.

``GET``/``PUT /driver/route/`` read and replace the visit order,
``POST /driver/route/move/`` nudges one stop and
``POST /driver/route/optimize/`` asks the optimizer for a new order.
Optimization never fails the request: the response says whether the
new order was applied.
"""

from __future__ import annotations

from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from modules.core.exceptions import error_response
from modules.core.permissions import IsDriver
from modules.deliveries.serializers import DeliveryAssignmentSerializer
from modules.routing.exceptions import InvalidRouteOrder, StopNotInRoute
from modules.routing.serializers import (
    MoveStopSerializer,
    OptimizeSerializer,
    RouteOrderSerializer,
)
from modules.routing.services import build_route_sequencer
from modules.shipping.calculator import Coordinates


def _route_body(stops) -> dict:
    return {"stops": DeliveryAssignmentSerializer(stops, many=True).data}


class DriverRouteView(APIView):
    permission_classes = [IsDriver]

    def get(self, request: Request) -> Response:
        return Response(_route_body(build_route_sequencer().sequence(request.user)))

    def put(self, request: Request) -> Response:
        serializer = RouteOrderSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            stops = build_route_sequencer().save_order(
                request.user, serializer.validated_data["assignment_ids"]
            )
        except InvalidRouteOrder as exc:
            return error_response(exc)
        return Response(_route_body(stops))


class DriverRouteMoveView(APIView):
    permission_classes = [IsDriver]

    def post(self, request: Request) -> Response:
        serializer = MoveStopSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        try:
            stops = build_route_sequencer().move(
                request.user, data["assignment_id"], data["direction"]
            )
        except StopNotInRoute as exc:
            return error_response(exc)
        return Response(_route_body(stops))


class DriverRouteOptimizeView(APIView):
    permission_classes = [IsDriver]

    def post(self, request: Request) -> Response:
        serializer = OptimizeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        location = serializer.validated_data.get("driver_location")
        origin = Coordinates(lat=location["lat"], lng=location["lng"]) if location else None

        result = build_route_sequencer().auto_organize(request.user, origin)
        body = _route_body(result.stops)
        body["optimized"] = result.applied
        if not result.applied:
            body["message"] = "Rota mantida na ordem atual."
        return Response(body)
