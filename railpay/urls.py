from django.contrib import admin
from django.http import JsonResponse
from django.urls import path, include


def health_check(request):
    return JsonResponse({"status": "ok"})


urlpatterns = [
    path("admin/", admin.site.urls),
    path("healthz", health_check),
    path("api/", include("railpay.apps.users.urls")),
    path("api/", include("railpay.apps.routes.urls")),
    path("api/", include("railpay.apps.settlement.urls")),
    path("api/", include("railpay.apps.reconciliation.urls")),
]
