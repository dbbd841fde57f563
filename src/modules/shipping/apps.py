from django.apps import AppConfig


class ShippingAppConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "modules.shipping"
    label = "shipping"
