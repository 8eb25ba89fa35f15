from rest_framework import serializers

from .models import Payment


class PaymentSerializer(serializers.ModelSerializer):
    class Meta:
        model = Payment
        fields = (
            "id",
            "payer",
            "ticket",
            "travel_pass",
            "amount",
            "currency",
            "method",
            "status",
            "reference",
            "reference_hash",
            "ledger_tx_hash",
            "ledger_receipt_id",
            "metadata",
            "created_at",
        )
        read_only_fields = fields
