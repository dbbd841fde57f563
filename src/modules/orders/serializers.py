"""Order DRF serializers for API input/output.

The serializer operates at the Interface layer (API Views).
Business logic lives in the Service Layer, which receives
Pydantic DTOs from ``dtos.py``.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from rest_framework import serializers

from modules.notifications.whatsapp import order_status_whatsapp_link
from modules.orders.constants import OrderStatus, PaymentMethod, PaymentStatus
from modules.orders.models import DeliveryAddress, Order, OrderItem, OrderStatusLog

# ---------------------------------------------------------------------------
# Input Serializers
# ---------------------------------------------------------------------------


class CheckoutItemSerializer(serializers.Serializer):
    product_id = serializers.UUIDField()
    quantity = serializers.IntegerField(min_value=1)


class CustomerSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=255)
    email = serializers.EmailField()
    phone = serializers.CharField(max_length=32)


class AddressInputSerializer(serializers.Serializer):
    street = serializers.CharField(max_length=255)
    number = serializers.CharField(max_length=20)
    complement = serializers.CharField(
        max_length=120, required=False, default="", allow_blank=True
    )
    neighborhood = serializers.CharField(max_length=120)
    city = serializers.CharField(max_length=120)
    state = serializers.CharField(max_length=2, min_length=2)
    zip_code = serializers.CharField(max_length=9)
    reference = serializers.CharField(
        max_length=255, required=False, default="", allow_blank=True
    )


class CheckoutSerializer(serializers.Serializer):
    """Validates the checkout payload.  Prices are never accepted."""

    customer = CustomerSerializer()
    address = AddressInputSerializer()
    items = CheckoutItemSerializer(many=True, allow_empty=False)
    payment_method = serializers.ChoiceField(choices=PaymentMethod.choices)
    notes = serializers.CharField(required=False, default="", allow_blank=True)


class OrderUpdateSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=OrderStatus.choices, required=False)
    payment_status = serializers.ChoiceField(
        choices=PaymentStatus.choices, required=False
    )
    notes = serializers.CharField(required=False, allow_blank=True)

    def validate(self, attrs: Dict[str, Any]) -> Dict[str, Any]:
        if not attrs:
            raise serializers.ValidationError(
                "Provide at least one of: status, payment_status, notes."
            )
        return attrs


class CancelSerializer(serializers.Serializer):
    notes = serializers.CharField(required=False, default="", allow_blank=True)


class AssignDriverSerializer(serializers.Serializer):
    driver_id = serializers.IntegerField()
    override = serializers.BooleanField(required=False, default=False)


# ---------------------------------------------------------------------------
# Output Serializers (Read)
# ---------------------------------------------------------------------------


class CheckoutResultSerializer(serializers.Serializer):
    order_id = serializers.UUIDField()
    order_code = serializers.CharField()
    payment_redirect_url = serializers.CharField(allow_null=True)


class OrderItemSerializer(serializers.ModelSerializer):
    class Meta:
        model = OrderItem
        fields = [
            "product_id",
            "product_name",
            "product_sku",
            "quantity",
            "unit_price",
            "subtotal",
        ]
        read_only_fields = fields


class StatusLogSerializer(serializers.ModelSerializer):
    status_label = serializers.CharField(source="get_status_display", read_only=True)

    class Meta:
        model = OrderStatusLog
        fields = ["sequence", "status", "status_label", "note", "created_at"]
        read_only_fields = fields


class AdminStatusLogSerializer(StatusLogSerializer):
    class Meta(StatusLogSerializer.Meta):
        fields = StatusLogSerializer.Meta.fields + ["actor"]
        read_only_fields = fields


class DeliveryAddressSerializer(serializers.ModelSerializer):
    class Meta:
        model = DeliveryAddress
        fields = [
            "street",
            "number",
            "complement",
            "neighborhood",
            "city",
            "state",
            "zip_code",
            "reference",
        ]
        read_only_fields = fields


def current_assignment(order: Order):
    """Active assignment, else the delivered one; released rows are history."""
    candidates = [
        assignment
        for assignment in order.assignments.all()
        if assignment.status != "LIBERADA"
    ]
    if not candidates:
        return None
    return max(candidates, key=lambda assignment: assignment.created_at)


def _assignment_summary(order: Order, admin: bool) -> Optional[Dict[str, Any]]:
    assignment = current_assignment(order)
    if assignment is None:
        return None
    driver = assignment.driver
    summary: Dict[str, Any] = {
        "driver_first_name": driver.first_name or driver.get_username(),
        "status": assignment.status,
        "delivered_at": assignment.delivered_at,
        "recipient_name": assignment.recipient_name,
    }
    if admin:
        summary.update(
            {
                "assignment_id": str(assignment.id),
                "driver_id": driver.pk,
                "source": assignment.source,
            }
        )
    return summary


class TrackingSerializer(serializers.ModelSerializer):
    """Customer-facing view: no internal notes, ids or payment references."""

    status_label = serializers.CharField(source="get_status_display", read_only=True)
    items = OrderItemSerializer(many=True, read_only=True)
    timeline = StatusLogSerializer(source="status_log", many=True, read_only=True)
    delivery = serializers.SerializerMethodField()

    class Meta:
        model = Order
        fields = [
            "code",
            "status",
            "status_label",
            "payment_status",
            "payment_method",
            "subtotal",
            "shipping_price",
            "total",
            "free_shipping",
            "created_at",
            "items",
            "timeline",
            "delivery",
        ]
        read_only_fields = fields

    def get_delivery(self, order: Order) -> Optional[Dict[str, Any]]:
        return _assignment_summary(order, admin=False)


class OrderListSerializer(serializers.ModelSerializer):
    class Meta:
        model = Order
        fields = [
            "id",
            "code",
            "status",
            "payment_status",
            "payment_method",
            "customer_name",
            "total",
            "created_at",
        ]
        read_only_fields = fields


class OrderSerializer(serializers.ModelSerializer):
    """Admin detail view."""

    address = DeliveryAddressSerializer(read_only=True)
    items = OrderItemSerializer(many=True, read_only=True)
    status_log = AdminStatusLogSerializer(many=True, read_only=True)
    qr_payload = serializers.CharField(read_only=True)
    whatsapp_link = serializers.SerializerMethodField()
    delivery = serializers.SerializerMethodField()

    class Meta:
        model = Order
        fields = [
            "id",
            "code",
            "status",
            "payment_status",
            "payment_method",
            "payment_method_detail",
            "payment_external_id",
            "customer_name",
            "customer_email",
            "customer_phone",
            "subtotal",
            "shipping_price",
            "total",
            "distance_km",
            "free_shipping",
            "notes",
            "qr_payload",
            "whatsapp_link",
            "address",
            "items",
            "status_log",
            "delivery",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_whatsapp_link(self, order: Order) -> str:
        return order_status_whatsapp_link(order)

    def get_delivery(self, order: Order) -> Optional[Dict[str, Any]]:
        return _assignment_summary(order, admin=True)
