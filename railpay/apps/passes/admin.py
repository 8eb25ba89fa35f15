from django.contrib import admin
from .models import Pass


@admin.register(Pass)
class PassAdmin(admin.ModelAdmin):
    list_display = ("id", "owner", "pass_class", "status", "starts_at", "expires_at", "ledger_pass_id")
    list_filter = ("pass_class", "status")
    search_fields = ("id", "owner__full_name", "ledger_tx_hash", "ledger_pass_id")
    readonly_fields = ("starts_at", "expires_at", "ledger_tx_hash", "ledger_pass_id")
    date_hierarchy = "starts_at"
