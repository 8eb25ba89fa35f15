from rest_framework import serializers

from .models import Profile


class ProfileSerializer(serializers.ModelSerializer):
    class Meta:
        model = Profile
        fields = (
            "id",
            "full_name",
            "phone",
            "dob",
            "nin_last4",
            "verification_status",
            "verified_at",
            "wallet_address",
            "role",
        )
        read_only_fields = fields


class VerifyNINSerializer(serializers.Serializer):
    nin = serializers.RegexField(r"^\d{11}$", error_messages={"invalid": "NIN must be 11 digits"})
    full_name = serializers.CharField(max_length=128)
    dob = serializers.DateField()
    phone = serializers.CharField(max_length=32)


class LinkWalletSerializer(serializers.Serializer):
    wallet_address = serializers.CharField(max_length=42)
