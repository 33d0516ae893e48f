from rest_framework import serializers

from modules.finance.models import FinancialEntry


class FinancialEntrySerializer(serializers.ModelSerializer):
    class Meta:
        model = FinancialEntry
        fields = [
            "id",
            "type",
            "description",
            "amount",
            "category",
            "date",
            "status",
            "order_id",
            "created_at",
        ]
        read_only_fields = fields
