from django.apps import AppConfig


class UsersConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'railpay.apps.users'
    verbose_name = 'Users'

    def ready(self):
        import railpay.apps.users.signals  # noqa
