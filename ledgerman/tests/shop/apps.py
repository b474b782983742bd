from django.apps import AppConfig


class ShopConfig(AppConfig):
    """Minimal product catalog used by the test suite."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "ledgerman.tests.shop"
    label = "shop"
