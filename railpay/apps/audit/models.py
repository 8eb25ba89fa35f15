import uuid
from django.db import models


class AdminLog(models.Model):
    """Append-only record of staff/admin actions (fare changes, QR scans, reconciliations)."""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    actor = models.ForeignKey(
        "users.Profile", on_delete=models.SET_NULL, null=True, blank=True, related_name="admin_logs"
    )
    action_type = models.CharField(max_length=64, db_index=True)  # e.g. update_fare, scan_ticket
    resource_type = models.CharField(max_length=32, db_index=True)  # route, ticket, chain
    resource_id = models.CharField(max_length=64, blank=True, default="", db_index=True)
    description = models.TextField(blank=True, default="")
    metadata = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        ordering = ["-created_at"]

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValueError("AdminLog entries are append-only")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValueError("AdminLog entries are append-only")
