import uuid
from datetime import timedelta

from django.db import models
from django.db.models import F, Q
from django.utils import timezone

from railpay.apps.ledger.types import PassType

PASS_DURATIONS = {
    "daily": timedelta(hours=24),
    "weekly": timedelta(days=7),
    "monthly": timedelta(days=30),
}

PASS_TYPES = {
    "daily": PassType.DAILY,
    "weekly": PassType.WEEKLY,
    "monthly": PassType.MONTHLY,
}

PASS_CLASSES = {v: k for k, v in PASS_TYPES.items()}


def pass_window(pass_class: str, starts_at):
    return starts_at, starts_at + PASS_DURATIONS[pass_class]


class Pass(models.Model):
    """Off-chain mirror of a RailPassSubscription pass. Immutable apart from status."""
    CLASS = [("daily", "Daily"), ("weekly", "Weekly"), ("monthly", "Monthly")]
    STATUS = [("active", "Active"), ("expired", "Expired")]
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    owner = models.ForeignKey("users.Profile", on_delete=models.PROTECT, related_name="passes")
    pass_class = models.CharField(max_length=8, choices=CLASS, db_index=True)
    starts_at = models.DateTimeField()
    expires_at = models.DateTimeField(db_index=True)
    status = models.CharField(max_length=8, choices=STATUS, default="active", db_index=True)
    ledger_tx_hash = models.CharField(max_length=128, blank=True, default="", db_index=True)
    ledger_pass_id = models.BigIntegerField(null=True, blank=True, unique=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name_plural = "passes"
        ordering = ["-starts_at"]
        indexes = [models.Index(fields=["owner", "status", "expires_at"])]
        constraints = [
            models.CheckConstraint(condition=Q(expires_at__gt=F("starts_at")), name="pass_expires_after_start"),
        ]

    def __str__(self):
        return f"{self.get_pass_class_display()} pass {self.id}"

    def save(self, *args, **kwargs):
        if self.pass_class not in PASS_DURATIONS:
            raise ValueError(f"Unknown pass class {self.pass_class!r}")
        if self._state.adding:
            if self.starts_at is None:
                self.starts_at = timezone.now()
            # the window is always derived from the class
            self.starts_at, self.expires_at = pass_window(self.pass_class, self.starts_at)
        else:
            update_fields = kwargs.get("update_fields")
            if update_fields is None or set(update_fields) - {"status"}:
                raise ValueError("Passes are immutable once created; only status may change")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValueError("Passes are never deleted; expire them instead")

    @property
    def pass_type(self) -> PassType:
        return PASS_TYPES[self.pass_class]

    @property
    def duration(self) -> timedelta:
        return PASS_DURATIONS[self.pass_class]

    def is_valid(self, now=None) -> bool:
        now = now or timezone.now()
        return self.status == "active" and self.expires_at > now
