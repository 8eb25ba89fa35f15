import uuid
from django.db import models


class SettlementAttempt(models.Model):
    """
    One row per idempotency reference. Tracks how far a settlement got so a
    retried request resumes instead of writing to the ledger twice.
    """
    KIND = [("ticket", "Ticket"), ("pass", "Pass"), ("payment", "Payment")]
    STATUS = [
        ("pending", "Pending"),
        ("submitting", "Submitting"),  # claimed; ledger write in flight
        ("submitted", "Submitted"),
        ("confirmed", "Confirmed"),
        ("persisted", "Persisted"),
        ("failed", "Failed"),
    ]
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    reference = models.CharField(max_length=128, unique=True)
    kind = models.CharField(max_length=8, choices=KIND, db_index=True)
    profile = models.ForeignKey("users.Profile", on_delete=models.PROTECT, related_name="settlement_attempts")
    status = models.CharField(max_length=12, choices=STATUS, default="pending", db_index=True)
    request_hash = models.CharField(max_length=64)
    payload = models.JSONField(default=dict, blank=True)  # request as submitted
    record_id = models.UUIDField(null=True, blank=True)  # mirror row id, chosen before submit
    tx_kind = models.CharField(max_length=16, blank=True, default="")
    tx_hash = models.CharField(max_length=128, blank=True, default="", db_index=True)
    block_number = models.BigIntegerField(null=True, blank=True)
    ledger_id = models.BigIntegerField(null=True, blank=True)
    event_args = models.JSONField(default=dict, blank=True)
    error = models.TextField(blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [models.Index(fields=["status", "updated_at"])]

    def __str__(self):
        return f"{self.kind} {self.reference} ({self.status})"
