from django.apps import AppConfig


class LedgerAppConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'railpay.apps.ledger'
    verbose_name = 'Ledger'
