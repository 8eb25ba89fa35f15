import uuid
from django.db import models


class LedgerIdentifier(models.Model):
    """Registered UUID → ledger integer mappings, one namespace per entity kind."""
    NAMESPACES = [("route", "Route"), ("ticket", "Ticket"), ("pass", "Pass")]
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    namespace = models.CharField(max_length=16, choices=NAMESPACES, db_index=True)
    # unsigned 64-bit values overflow BigIntegerField; stored as a decimal string
    ledger_id = models.CharField(max_length=20)
    object_id = models.UUIDField(db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["namespace", "ledger_id"], name="uniq_ledger_identifier"),
        ]

    def __str__(self):
        return f"{self.namespace}:{self.ledger_id} → {self.object_id}"
