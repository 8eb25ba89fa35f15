from django.contrib import admin
from .models import LedgerIdentifier


@admin.register(LedgerIdentifier)
class LedgerIdentifierAdmin(admin.ModelAdmin):
    list_display = ("namespace", "ledger_id", "object_id", "created_at")
    list_filter = ("namespace",)
    search_fields = ("ledger_id", "object_id")
