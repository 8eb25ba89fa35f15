from rest_framework import serializers

from railpay.apps.passes.serializers import PassSerializer
from railpay.apps.tickets.models import Ticket


class BuyTicketSerializer(serializers.Serializer):
    route_id = serializers.UUIDField()
    travel_date = serializers.DateTimeField(required=False, allow_null=True)
    seat_number = serializers.CharField(max_length=16, required=False, allow_blank=True, default="")
    ticket_type = serializers.ChoiceField(choices=Ticket.TYPE, default="single")
    reference = serializers.CharField(max_length=128, required=False, allow_blank=False)


class BuyPassSerializer(serializers.Serializer):
    pass_type = serializers.CharField(max_length=16)
    reference = serializers.CharField(max_length=128, required=False, allow_blank=False)


class PaymentRequestSerializer(serializers.Serializer):
    reference = serializers.CharField(max_length=128)
    amount = serializers.DecimalField(max_digits=20, decimal_places=8)
    ticket_id = serializers.UUIDField(required=False, allow_null=True)
    pass_id = serializers.UUIDField(required=False, allow_null=True)
    msg_value = serializers.DecimalField(max_digits=20, decimal_places=8, required=False, default=0)
    currency = serializers.CharField(max_length=8, required=False, default="ETH")
    payment_method = serializers.CharField(max_length=16, required=False, default="blockchain")


class ValidateTicketSerializer(serializers.Serializer):
    qr_payload = serializers.CharField(max_length=128)
    device_id = serializers.CharField(max_length=64, required=False, allow_blank=True, allow_null=True)


class PendingPersistSerializer(serializers.Serializer):
    kind = serializers.ChoiceField(choices=["ticket", "pass", "payment", "validation"])
    reference = serializers.CharField(max_length=128, allow_null=True, required=False)
    profile_id = serializers.UUIDField()
    record_id = serializers.UUIDField()
    tx_hash = serializers.CharField(max_length=128)
    block_number = serializers.IntegerField(allow_null=True, required=False)
    ledger_id = serializers.IntegerField(allow_null=True, required=False)
    event_args = serializers.DictField(required=False, default=dict)
    payload = serializers.DictField(required=False, default=dict)


class PassStatusSerializer(serializers.Serializer):
    pass_data = PassSerializer(source="pass")
    db_valid = serializers.BooleanField()
    blockchain_valid = serializers.BooleanField(allow_null=True)
    is_valid = serializers.BooleanField()
