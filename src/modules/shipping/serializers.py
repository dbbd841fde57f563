"""Shipping DRF serializers (quote input/output and admin tables)."""

from __future__ import annotations

from rest_framework import serializers

from modules.shipping.models import FreeShippingCity, ShippingRate

# ---------------------------------------------------------------------------
# Input Serializers
# ---------------------------------------------------------------------------


class QuoteRequestSerializer(serializers.Serializer):
    postal_code = serializers.CharField(max_length=12)
    subtotal = serializers.DecimalField(
        max_digits=12, decimal_places=2, min_value=0, coerce_to_string=False
    )


class ShippingConfigInputSerializer(serializers.Serializer):
    max_distance_km = serializers.DecimalField(
        max_digits=7, decimal_places=2, required=False
    )
    min_order_amount = serializers.DecimalField(
        max_digits=10, decimal_places=2, required=False
    )


class ShippingRateInputSerializer(serializers.Serializer):
    min_distance = serializers.DecimalField(max_digits=7, decimal_places=2)
    max_distance = serializers.DecimalField(max_digits=7, decimal_places=2)
    price = serializers.DecimalField(max_digits=10, decimal_places=2)
    active = serializers.BooleanField(required=False, default=True)


class FreeShippingCityInputSerializer(serializers.Serializer):
    city = serializers.CharField(max_length=120)
    state = serializers.CharField(max_length=2, min_length=2)
    active = serializers.BooleanField(required=False, default=True)
    min_order_amount = serializers.DecimalField(
        max_digits=10, decimal_places=2, required=False, default="0.00"
    )


# ---------------------------------------------------------------------------
# Output Serializers (Read)
# ---------------------------------------------------------------------------


class ShippingQuoteSerializer(serializers.Serializer):
    price = serializers.DecimalField(max_digits=10, decimal_places=2)
    distance_km = serializers.DecimalField(
        max_digits=9, decimal_places=2, allow_null=True
    )
    free_shipping = serializers.BooleanField()
    message = serializers.CharField(allow_blank=True)


class ShippingSettingsSerializer(serializers.Serializer):
    max_distance_km = serializers.DecimalField(max_digits=7, decimal_places=2)
    min_order_amount = serializers.DecimalField(max_digits=10, decimal_places=2)


class ShippingRateSerializer(serializers.ModelSerializer):
    class Meta:
        model = ShippingRate
        fields = ["id", "min_distance", "max_distance", "price", "active", "updated_at"]
        read_only_fields = fields


class FreeShippingCitySerializer(serializers.ModelSerializer):
    class Meta:
        model = FreeShippingCity
        fields = ["id", "city", "state", "active", "min_order_amount", "updated_at"]
        read_only_fields = fields
