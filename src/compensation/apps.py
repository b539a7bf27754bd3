"""App config for the compensation module."""
from django.apps import AppConfig


class CompensationConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "compensation"
    verbose_name = "Staff Compensation"

    def ready(self):
        import compensation.signals  # noqa: F401
