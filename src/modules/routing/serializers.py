"""Driver route serializers."""

from __future__ import annotations

from rest_framework import serializers

from modules.routing.constants import MoveDirection


class RouteOrderSerializer(serializers.Serializer):
    assignment_ids = serializers.ListField(
        child=serializers.UUIDField(), allow_empty=True
    )


class MoveStopSerializer(serializers.Serializer):
    assignment_id = serializers.UUIDField()
    direction = serializers.ChoiceField(choices=MoveDirection.choices)


class LocationSerializer(serializers.Serializer):
    lat = serializers.FloatField(min_value=-90, max_value=90)
    lng = serializers.FloatField(min_value=-180, max_value=180)


class OptimizeSerializer(serializers.Serializer):
    driver_location = LocationSerializer(required=False, allow_null=True)
