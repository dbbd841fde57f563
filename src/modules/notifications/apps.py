from django.apps import AppConfig


class NotificationsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "modules.notifications"
    label = "notifications"

    def ready(self) -> None:
        from modules.notifications.handlers import (
            order_status_email_handler,
            payment_confirmed_email_handler,
            status_log_audit_handler,
        )
        from modules.orders.events import OrderStatusLogged
        from modules.payments.events import PaymentStatusChanged
        from shared.infrastructure.bus import event_bus

        event_bus.subscribe(OrderStatusLogged, order_status_email_handler)
        event_bus.subscribe(OrderStatusLogged, status_log_audit_handler)
        event_bus.subscribe(PaymentStatusChanged, payment_confirmed_email_handler)
