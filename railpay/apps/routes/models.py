import uuid
from django.db import models


class Route(models.Model):
    VEHICLE_TYPES = [("train", "Train"), ("brt", "BRT"), ("bus", "Bus")]
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    origin = models.CharField(max_length=128, db_index=True)
    destination = models.CharField(max_length=128, db_index=True)
    vehicle_type = models.CharField(max_length=16, choices=VEHICLE_TYPES, default="train")
    base_price = models.DecimalField(max_digits=20, decimal_places=8)  # ETH
    estimated_minutes = models.PositiveIntegerField(null=True, blank=True)
    active = models.BooleanField(default=True, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["origin", "destination"]
        constraints = [
            models.CheckConstraint(condition=models.Q(base_price__gt=0), name="route_price_positive"),
        ]

    def __str__(self):
        return f"{self.origin} → {self.destination}"
