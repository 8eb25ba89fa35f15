from django.contrib import admin
from .models import Ticket


@admin.register(Ticket)
class TicketAdmin(admin.ModelAdmin):
    list_display = (
        "id",
        "owner",
        "route",
        "ticket_type",
        "status",
        "price",
        "ledger_token_id",
        "travel_time",
        "purchased_at",
    )
    list_filter = ("status", "ticket_type")
    search_fields = ("id", "owner__full_name", "ledger_tx_hash", "ledger_token_id")
    readonly_fields = ("status", "ledger_tx_hash", "ledger_token_id", "validation_tx_hash", "validated_at")
    date_hierarchy = "purchased_at"

    def has_delete_permission(self, request, obj=None):
        return False
