from django.urls import path
from .views import (
    admin_scan_qr,
    create_pass,
    pass_status,
    process_payment,
    retry_persist,
    retry_settlement,
    tickets,
    validate_ticket,
)

urlpatterns = [
    path("tickets/", tickets, name="tickets"),
    path("tickets/validate/", validate_ticket, name="ticket-validate"),
    path("passes/", create_pass, name="pass-create"),
    path("passes/status/", pass_status, name="pass-status"),
    path("payments/", process_payment, name="payment-create"),
    path("settlements/retry-persist/", retry_persist, name="settlement-retry-persist"),
    path("settlements/<str:reference>/retry/", retry_settlement, name="settlement-retry"),
    path("admin/scan/", admin_scan_qr, name="admin-scan-qr"),
]
