from django.apps import AppConfig


class ReconciliationConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'railpay.apps.reconciliation'
    verbose_name = 'Reconciliation'
