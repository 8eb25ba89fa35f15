import uuid
from datetime import timedelta

from django.conf import settings
from django.db import models
from django.db.models import Q
from django.utils import timezone

from .qr import build_qr_payload


class Ticket(models.Model):
    """Off-chain mirror of a RailPayTicket token."""
    TYPE = [("single", "Single"), ("return", "Return")]
    STATUS = [("valid", "Valid"), ("used", "Used"), ("expired", "Expired")]
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    owner = models.ForeignKey("users.Profile", on_delete=models.PROTECT, related_name="tickets")
    # null when reconciliation cannot map the on-chain route id back
    route = models.ForeignKey(
        "routes.Route", on_delete=models.PROTECT, null=True, blank=True, related_name="tickets"
    )
    seat_label = models.CharField(max_length=16, blank=True, default="")
    ticket_type = models.CharField(max_length=8, choices=TYPE, default="single")
    status = models.CharField(max_length=8, choices=STATUS, default="valid", db_index=True)
    price = models.DecimalField(max_digits=20, decimal_places=8)  # ETH
    ledger_tx_hash = models.CharField(max_length=128, blank=True, default="", db_index=True)  # mint tx
    ledger_token_id = models.BigIntegerField(null=True, blank=True, unique=True)
    validation_tx_hash = models.CharField(max_length=128, blank=True, default="")
    travel_time = models.DateTimeField(db_index=True)
    purchased_at = models.DateTimeField(default=timezone.now)
    validated_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-purchased_at"]
        indexes = [models.Index(fields=["owner", "status", "purchased_at"])]
        constraints = [
            models.CheckConstraint(
                condition=(
                    Q(status="used", validated_at__isnull=False)
                    | (~Q(status="used") & Q(validated_at__isnull=True))
                ),
                name="ticket_validated_at_iff_used",
            ),
            models.CheckConstraint(
                condition=Q(ledger_token_id__isnull=True) | ~Q(ledger_tx_hash=""),
                name="ticket_token_requires_tx",
            ),
        ]

    def __str__(self):
        return f"Ticket {self.id} ({self.status})"

    def delete(self, *args, **kwargs):
        raise ValueError("Tickets are never deleted; expire them instead")

    @property
    def qr_payload(self) -> str:
        return build_qr_payload(self.id)

    @property
    def is_past_travel(self) -> bool:
        grace = timedelta(hours=settings.TICKET_EXPIRY_GRACE_HOURS)
        return self.travel_time + grace < timezone.now()

    @property
    def display_status(self) -> str:
        if self.status == "valid" and self.is_past_travel:
            return "expired"
        return self.status
