"""Delivery DRF serializers."""

from __future__ import annotations

from typing import Any, Dict

from rest_framework import serializers

from modules.deliveries.constants import AssignmentStatus
from modules.deliveries.models import DeliveryAssignment
from modules.orders.serializers import DeliveryAddressSerializer

# ---------------------------------------------------------------------------
# Input Serializers
# ---------------------------------------------------------------------------


class ClaimSerializer(serializers.Serializer):
    """Either the raw QR text (``order_ref``) or ``order_id`` + ``order_code``."""

    order_ref = serializers.CharField(required=False)
    order_id = serializers.UUIDField(required=False)
    order_code = serializers.CharField(required=False, max_length=16)

    def validate(self, attrs: Dict[str, Any]) -> Dict[str, Any]:
        if attrs.get("order_ref"):
            return attrs
        if attrs.get("order_id") and attrs.get("order_code"):
            return attrs
        raise serializers.ValidationError(
            "Provide order_ref, or order_id together with order_code."
        )


class AdvanceSerializer(serializers.Serializer):
    status = serializers.ChoiceField(
        choices=[AssignmentStatus.EM_ROTA, AssignmentStatus.ENTREGUE]
    )
    recipient_name = serializers.CharField(
        required=False, default="", allow_blank=True, max_length=255
    )
    notes = serializers.CharField(required=False, default="", allow_blank=True)


# ---------------------------------------------------------------------------
# Output Serializers
# ---------------------------------------------------------------------------


class AssignmentOrderSerializer(serializers.Serializer):
    id = serializers.UUIDField()
    code = serializers.CharField()
    status = serializers.CharField()
    payment_status = serializers.CharField()
    payment_method = serializers.CharField()
    customer_name = serializers.CharField()
    customer_phone = serializers.CharField()
    total = serializers.DecimalField(max_digits=12, decimal_places=2)
    notes = serializers.CharField()
    address = DeliveryAddressSerializer()


class DeliveryAssignmentSerializer(serializers.ModelSerializer):
    order = AssignmentOrderSerializer(read_only=True)
    status_label = serializers.CharField(source="get_status_display", read_only=True)

    class Meta:
        model = DeliveryAssignment
        fields = [
            "id",
            "status",
            "status_label",
            "source",
            "recipient_name",
            "notes",
            "started_at",
            "delivered_at",
            "created_at",
            "order",
        ]
        read_only_fields = fields
