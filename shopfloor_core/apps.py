# shopfloor_core/apps.py

from django.apps import AppConfig


class ShopfloorCoreConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "shopfloor_core"
    verbose_name = "Shopfloor Production"

    def ready(self):
        from . import signals  # noqa
