from django.contrib import admin
from .models import SettlementAttempt


@admin.register(SettlementAttempt)
class SettlementAttemptAdmin(admin.ModelAdmin):
    list_display = ("reference", "kind", "profile", "status", "tx_hash", "ledger_id", "updated_at")
    list_filter = ("kind", "status")
    search_fields = ("reference", "tx_hash", "profile__full_name")
    readonly_fields = ("request_hash", "payload", "event_args", "tx_hash", "block_number", "ledger_id", "record_id")
    date_hierarchy = "created_at"
