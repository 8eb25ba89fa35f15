import uuid
from django.conf import settings
from django.db import models


class Profile(models.Model):
    """Passenger/staff profile attached to the auth user."""
    ROLE_CHOICES = [
        ("passenger", "Passenger"),
        ("staff", "Staff"),
        ("admin", "Admin"),
    ]
    VERIFICATION_CHOICES = [
        ("unverified", "Unverified"),
        ("self_attested", "Self-attested"),  # provider down, user's own statement only
        ("verified", "Verified"),
    ]
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.OneToOneField(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="profile")
    full_name = models.CharField(max_length=128, blank=True, default="")
    phone = models.CharField(max_length=32, null=True, blank=True, db_index=True)
    dob = models.DateField(null=True, blank=True)
    nin_encrypted = models.BinaryField(null=True, blank=True)  # Fernet
    nin_last4 = models.CharField(max_length=4, blank=True, default="")
    verification_status = models.CharField(
        max_length=16, choices=VERIFICATION_CHOICES, default="unverified", db_index=True
    )
    verified_at = models.DateTimeField(null=True, blank=True)
    wallet_address = models.CharField(max_length=42, unique=True, null=True, blank=True)  # stored lowercase
    role = models.CharField(max_length=16, choices=ROLE_CHOICES, default="passenger", db_index=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.display_name()

    def save(self, *args, **kwargs):
        if self.wallet_address:
            self.wallet_address = self.wallet_address.lower()
        else:
            self.wallet_address = None
        super().save(*args, **kwargs)

    def display_name(self):
        return self.full_name or self.user.get_username()

    @property
    def is_verified(self) -> bool:
        return self.verification_status == "verified"

    @property
    def is_staff_member(self) -> bool:
        return self.role in ("staff", "admin")

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    def identity_accepted(self, accept_self_attested: bool = False) -> bool:
        if self.verification_status == "verified":
            return True
        return accept_self_attested and self.verification_status == "self_attested"


class NINVerification(models.Model):
    """One row per verification attempt, whatever the outcome."""
    OUTCOMES = [
        ("verified", "Verified"),
        ("self_attested", "Self-attested"),
        ("not_found", "Not found"),
        ("name_mismatch", "Name mismatch"),
    ]
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    profile = models.ForeignKey(Profile, on_delete=models.CASCADE, related_name="nin_verifications")
    nin_last4 = models.CharField(max_length=4)
    provider = models.CharField(max_length=32, default="korapay")
    outcome = models.CharField(max_length=16, choices=OUTCOMES, db_index=True)
    request_payload = models.JSONField(default=dict, blank=True)  # NIN itself is never stored here
    response_payload = models.JSONField(default=dict, blank=True)
    error = models.TextField(blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [models.Index(fields=["profile", "created_at"])]
