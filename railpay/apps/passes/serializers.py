from rest_framework import serializers

from .models import Pass


class PassSerializer(serializers.ModelSerializer):
    class Meta:
        model = Pass
        fields = (
            "id",
            "owner",
            "pass_class",
            "status",
            "starts_at",
            "expires_at",
            "ledger_tx_hash",
            "ledger_pass_id",
        )
        read_only_fields = fields
