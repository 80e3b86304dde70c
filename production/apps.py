# production/apps.py
from django.apps import AppConfig


class ProductionConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "production"
    verbose_name = "Production"

    def ready(self):
        # Register domain event handlers.
        import production.handlers  # noqa: F401
