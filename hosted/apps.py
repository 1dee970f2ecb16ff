from django.apps import AppConfig


class HostedConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "hosted"
    verbose_name = "Hosted backend"
