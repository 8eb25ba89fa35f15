import uuid
from django.db import models
from django.db.models import Q


class Payment(models.Model):
    """Off-chain mirror of a PaymentMade / PassPaymentMade event."""
    METHOD = [("blockchain", "Blockchain"), ("wallet", "Wallet"), ("card", "Card")]
    STATUS = [("completed", "Completed"), ("refunded", "Refunded")]
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    payer = models.ForeignKey("users.Profile", on_delete=models.PROTECT, related_name="payments")
    ticket = models.ForeignKey(
        "tickets.Ticket", on_delete=models.PROTECT, null=True, blank=True, related_name="payments"
    )
    travel_pass = models.ForeignKey(
        "passes.Pass", on_delete=models.PROTECT, null=True, blank=True, related_name="payments"
    )
    amount = models.DecimalField(max_digits=20, decimal_places=8)
    currency = models.CharField(max_length=8, default="ETH")
    method = models.CharField(max_length=16, choices=METHOD, default="blockchain")
    status = models.CharField(max_length=16, choices=STATUS, default="completed", db_index=True)
    ledger_tx_hash = models.CharField(max_length=128, blank=True, default="", db_index=True)
    ledger_receipt_id = models.BigIntegerField(null=True, blank=True, unique=True)
    reference = models.CharField(max_length=128, null=True, blank=True, unique=True)  # client idempotency token
    reference_hash = models.CharField(max_length=66, blank=True, default="")  # bytes32 sent on-chain
    metadata = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [models.Index(fields=["payer", "created_at"])]
        constraints = [
            models.CheckConstraint(condition=Q(amount__gt=0), name="payment_amount_positive"),
            models.CheckConstraint(
                condition=(
                    Q(ticket__isnull=False, travel_pass__isnull=True)
                    | Q(ticket__isnull=True, travel_pass__isnull=False)
                ),
                name="payment_exactly_one_target",
            ),
        ]

    @classmethod
    def from_db(cls, db, field_names, values):
        instance = super().from_db(db, field_names, values)
        instance._stored_receipt_id = instance.__dict__.get("ledger_receipt_id")
        return instance

    def save(self, *args, **kwargs):
        stored = getattr(self, "_stored_receipt_id", None)
        if stored is not None and self.ledger_receipt_id != stored:
            raise ValueError("ledger_receipt_id cannot change once set")
        super().save(*args, **kwargs)
        self._stored_receipt_id = self.ledger_receipt_id

    def delete(self, *args, **kwargs):
        raise ValueError("Payments are never deleted")

    @property
    def target(self):
        return self.ticket if self.ticket_id else self.travel_pass
