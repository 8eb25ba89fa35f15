from django.contrib import admin
from .models import Route
from .services import save_route


@admin.register(Route)
class RouteAdmin(admin.ModelAdmin):
    """Edits go through ``save_route`` so they reach the audit log; fares through the fare API."""

    list_display = ("origin", "destination", "vehicle_type", "base_price", "estimated_minutes", "active")
    list_filter = ("vehicle_type", "active")
    search_fields = ("origin", "destination")
    readonly_fields = ("base_price", "active")

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False

    def has_change_permission(self, request, obj=None):
        profile = getattr(request.user, "profile", None)
        return bool(profile and profile.is_admin)

    def save_model(self, request, obj, form, change):
        fields = {name: form.cleaned_data[name] for name in form.changed_data}
        save_route(request.user.profile, route_id=obj.pk, **fields)
        obj.refresh_from_db()
