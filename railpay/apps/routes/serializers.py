from rest_framework import serializers

from .models import Route


class RouteSerializer(serializers.ModelSerializer):
    class Meta:
        model = Route
        fields = ("id", "origin", "destination", "vehicle_type", "base_price", "estimated_minutes", "active")
        read_only_fields = ("id",)


class RouteUpdateSerializer(serializers.Serializer):
    origin = serializers.CharField(max_length=128, required=False)
    destination = serializers.CharField(max_length=128, required=False)
    vehicle_type = serializers.ChoiceField(choices=Route.VEHICLE_TYPES, required=False)
    base_price = serializers.DecimalField(max_digits=20, decimal_places=8, required=False)
    estimated_minutes = serializers.IntegerField(min_value=0, required=False, allow_null=True)
    active = serializers.BooleanField(required=False)


class FareUpdateSerializer(serializers.Serializer):
    base_price = serializers.DecimalField(max_digits=20, decimal_places=8)
