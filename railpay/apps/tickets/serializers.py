from rest_framework import serializers

from .models import Ticket


class TicketSerializer(serializers.ModelSerializer):
    qr_payload = serializers.CharField(read_only=True)
    display_status = serializers.CharField(read_only=True)

    class Meta:
        model = Ticket
        fields = (
            "id",
            "owner",
            "route",
            "seat_label",
            "ticket_type",
            "status",
            "display_status",
            "price",
            "qr_payload",
            "ledger_tx_hash",
            "ledger_token_id",
            "travel_time",
            "purchased_at",
            "validated_at",
        )
        read_only_fields = fields
