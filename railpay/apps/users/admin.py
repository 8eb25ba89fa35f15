from django.contrib import admin
from .models import Profile, NINVerification


@admin.register(Profile)
class ProfileAdmin(admin.ModelAdmin):
    list_display = (
        "full_name",
        "user",
        "role",
        "verification_status",
        "wallet_address",
        "is_active",
        "created_at",
    )
    search_fields = ("full_name", "user__username", "phone", "wallet_address", "nin_last4")
    list_filter = ("role", "verification_status", "is_active")
    exclude = ("nin_encrypted",)
    date_hierarchy = "created_at"


@admin.register(NINVerification)
class NINVerificationAdmin(admin.ModelAdmin):
    list_display = ("profile", "nin_last4", "provider", "outcome", "created_at")
    list_filter = ("outcome", "provider")
    search_fields = ("profile__full_name", "nin_last4")
    date_hierarchy = "created_at"
