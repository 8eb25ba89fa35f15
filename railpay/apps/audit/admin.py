from django.contrib import admin
from .models import AdminLog


@admin.register(AdminLog)
class AdminLogAdmin(admin.ModelAdmin):
    list_display = ("actor", "action_type", "resource_type", "resource_id", "created_at")
    list_filter = ("action_type", "resource_type")
    search_fields = ("resource_id", "description", "actor__full_name")
    date_hierarchy = "created_at"

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
