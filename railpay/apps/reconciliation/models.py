import uuid
from django.db import models


class ReconciliationRun(models.Model):
    """One reconciler invocation: the block range scanned and what came of it."""
    TRIGGER = [("task", "Celery task"), ("command", "Management command"), ("api", "API")]
    STATUS = [("completed", "Completed"), ("failed", "Failed")]
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    trigger = models.CharField(max_length=8, choices=TRIGGER, default="task")
    status = models.CharField(max_length=10, choices=STATUS, default="completed", db_index=True)
    from_block = models.BigIntegerField(null=True, blank=True)
    to_block = models.BigIntegerField(null=True, blank=True)
    current_block = models.BigIntegerField(null=True, blank=True)
    counts = models.JSONField(default=dict, blank=True)  # per event kind
    applied = models.PositiveIntegerField(default=0)
    failed = models.PositiveIntegerField(default=0)
    error = models.TextField(blank=True, default="")
    started_at = models.DateTimeField()
    finished_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-started_at"]

    def __str__(self):
        return f"Reconciliation {self.from_block}-{self.to_block} ({self.status})"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValueError("Reconciliation runs are append-only")
        super().save(*args, **kwargs)
