from django.conf import settings
from django.db.models.signals import post_save
from django.dispatch import receiver

from .models import Profile


# Every auth user gets a profile (unverified passenger, no wallet yet)
@receiver(
    post_save, sender=settings.AUTH_USER_MODEL, dispatch_uid="users.signals.create_profile"
)
def create_profile(sender, instance, created, **kwargs):
    if created:
        Profile.objects.get_or_create(
            user=instance,
            defaults={"full_name": instance.get_full_name() if hasattr(instance, "get_full_name") else ""},
        )
