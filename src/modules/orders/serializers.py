"""Order DRF serializers for API input/output.

Serializers operate at the Interface layer (API Views).  Business logic
lives in the Service Layer, which receives Pydantic DTOs from ``dtos.py``.
"""

from __future__ import annotations

from rest_framework import serializers

from modules.orders.constants import DiscountType, OrderType
from modules.orders.models import Order, OrderItem, OrderStatusHistory

# ---------------------------------------------------------------------------
# Input Serializers
# ---------------------------------------------------------------------------


class CreateOrderItemSerializer(serializers.Serializer):
    product = serializers.CharField(max_length=255)
    description = serializers.CharField(required=False, default="", allow_blank=True)
    quantity = serializers.IntegerField(min_value=1)
    unit_price = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0)
    discount = serializers.DecimalField(
        max_digits=12, decimal_places=2, min_value=0, required=False, default=0
    )
    discount_type = serializers.ChoiceField(
        choices=DiscountType.choices, required=False, default=DiscountType.PERCENT
    )


class CreateOrderSerializer(serializers.Serializer):
    """Validates the quote creation payload."""

    client_id = serializers.CharField(max_length=64)
    client_name = serializers.CharField(max_length=255)
    items = CreateOrderItemSerializer(many=True, allow_empty=False)
    taxes = serializers.DecimalField(
        max_digits=12, decimal_places=2, min_value=0, required=False, default=0
    )
    notes = serializers.CharField(required=False, default="", allow_blank=True)
    observation = serializers.CharField(required=False, default="", allow_blank=True)
    payment_method = serializers.CharField(
        required=False, default="", allow_blank=True, max_length=50
    )
    installments = serializers.IntegerField(required=False, allow_null=True, min_value=1)
    order_type = serializers.ChoiceField(
        choices=OrderType.choices, required=False, allow_null=True
    )
    delivery_date = serializers.DateField(required=False, allow_null=True)


class TransitionSerializer(serializers.Serializer):
    """Validates a role action request."""

    action = serializers.CharField(max_length=64)
    note = serializers.CharField(required=False, default="", allow_blank=True)
    rejection_reason = serializers.CharField(
        required=False, default="", allow_blank=True
    )
    receipt_url = serializers.URLField(required=False, default="", allow_blank=True)


# ---------------------------------------------------------------------------
# Output Serializers (Read)
# ---------------------------------------------------------------------------


class OrderItemSerializer(serializers.ModelSerializer):
    class Meta:
        model = OrderItem
        fields = [
            "id",
            "product",
            "description",
            "quantity",
            "unit_price",
            "discount",
            "discount_type",
            "total",
        ]
        read_only_fields = fields


class StatusHistorySerializer(serializers.ModelSerializer):
    user = serializers.CharField(source="changed_by", read_only=True)

    class Meta:
        model = OrderStatusHistory
        fields = ["status", "old_status", "timestamp", "user", "note"]
        read_only_fields = fields


class OrderSerializer(serializers.ModelSerializer):
    """Read serializer for orders with nested items and history."""

    items = OrderItemSerializer(many=True, read_only=True)
    status_history = StatusHistorySerializer(many=True, read_only=True)
    status_label = serializers.CharField(source="get_status_display", read_only=True)
    status_color = serializers.CharField(read_only=True)

    class Meta:
        model = Order
        fields = [
            "id",
            "number",
            "client_id",
            "client_name",
            "seller_id",
            "seller_name",
            "items",
            "subtotal",
            "taxes",
            "total",
            "status",
            "status_label",
            "status_color",
            "notes",
            "observation",
            "payment_method",
            "payment_status",
            "installments",
            "order_type",
            "delivery_date",
            "rejection_reason",
            "receipt_url",
            "production_started_at",
            "production_finished_at",
            "released_at",
            "released_by",
            "qr_code",
            "created_at",
            "updated_at",
            "status_history",
        ]
        read_only_fields = fields


class OrderListSerializer(serializers.ModelSerializer):
    """Lightweight serializer for dashboard lists (no nested relations)."""

    status_label = serializers.CharField(source="get_status_display", read_only=True)

    class Meta:
        model = Order
        fields = [
            "id",
            "number",
            "client_name",
            "seller_name",
            "status",
            "status_label",
            "payment_status",
            "total",
            "created_at",
        ]
        read_only_fields = fields


class QRCodeOrderSerializer(serializers.ModelSerializer):
    """What an unauthenticated QR-code viewer is allowed to see."""

    status_label = serializers.CharField(source="get_status_display", read_only=True)
    items = serializers.SerializerMethodField()

    class Meta:
        model = Order
        fields = [
            "id",
            "number",
            "client_name",
            "status",
            "status_label",
            "items",
            "released_at",
            "released_by",
        ]
        read_only_fields = fields

    def get_items(self, order: Order) -> list[dict]:
        return [
            {"product": item.product, "quantity": item.quantity}
            for item in order.items.all()
        ]
