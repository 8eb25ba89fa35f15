from django.contrib import admin
from .models import Payment


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = ("id", "payer", "amount", "currency", "method", "status", "ledger_receipt_id", "created_at")
    list_filter = ("status", "method", "currency")
    search_fields = ("id", "reference", "ledger_tx_hash", "payer__full_name")
    readonly_fields = ("ledger_tx_hash", "ledger_receipt_id", "reference", "reference_hash")
    date_hierarchy = "created_at"
