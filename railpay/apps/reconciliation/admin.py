from django.contrib import admin
from .models import ReconciliationRun


@admin.register(ReconciliationRun)
class ReconciliationRunAdmin(admin.ModelAdmin):
    list_display = ("started_at", "trigger", "status", "from_block", "to_block", "applied", "failed")
    list_filter = ("status", "trigger")
    readonly_fields = (
        "trigger",
        "status",
        "from_block",
        "to_block",
        "current_block",
        "counts",
        "applied",
        "failed",
        "error",
        "started_at",
        "finished_at",
    )
    date_hierarchy = "started_at"

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False
