from django.urls import path
from .views import reconcile_events

urlpatterns = [
    path("admin/reconcile/", reconcile_events, name="reconcile-events"),
]
