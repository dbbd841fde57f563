"""Read-only subscribers of fulfillment events.

They run when the outbox dispatcher publishes an event, never inside the
transaction that produced it.  A handler that raises marks the outbox
row as failed and the event is retried on a later dispatch.
"""

from __future__ import annotations

from typing import Optional

import structlog
from django.conf import settings
from django.core.mail import send_mail

from modules.notifications.whatsapp import order_status_message
from modules.orders.constants import OrderStatus, PaymentStatus
from modules.orders.events import OrderStatusLogged
from modules.orders.models import Order
from modules.payments.events import PaymentStatusChanged
from shared.domain.bus import IEventHandler

logger = structlog.get_logger(__name__)


def _load_order(order_id) -> Optional[Order]:
    return Order.objects.filter(id=order_id).first()


def _send(order: Order, subject: str, body: str) -> int:
    return send_mail(
        subject,
        body,
        settings.DEFAULT_FROM_EMAIL,
        [order.customer_email],
        fail_silently=False,
    )


class OrderStatusEmailHandler(IEventHandler[OrderStatusLogged]):
    """E-mails the customer whenever the order status changes.

    Log entries that only record a payment change (status unchanged)
    are left to ``PaymentConfirmedEmailHandler``.
    """

    def handle(self, event: OrderStatusLogged) -> None:
        if event.previous_status and event.previous_status == event.status:
            return
        order = _load_order(event.aggregate_id)
        if order is None or not order.customer_email:
            logger.info("notification.email_skipped", order_id=str(event.aggregate_id))
            return

        label = OrderStatus(event.status).label
        lines = [order_status_message(order)]
        if event.note:
            lines.append(event.note)
        lines.append(f"Acompanhe em {settings.SITE_URL}pedido/{order.code}")
        _send(order, f"Pedido {order.code}: {label}", "\n\n".join(lines))
        logger.info(
            "notification.status_email_sent",
            order_id=str(order.id),
            code=order.code,
            status=event.status,
        )


class PaymentConfirmedEmailHandler(IEventHandler[PaymentStatusChanged]):
    """One "payment confirmed" e-mail per applied ``PAGO`` event."""

    def handle(self, event: PaymentStatusChanged) -> None:
        if event.new_status != PaymentStatus.PAGO:
            return
        order = _load_order(event.aggregate_id)
        if order is None or not order.customer_email:
            return

        first_name = (order.customer_name or "").split(" ")[0]
        body = (
            f"Olá {first_name}! Recebemos o pagamento do pedido {order.code} "
            f"no valor de R$ {order.total}. Obrigado pela compra!"
        )
        _send(order, f"Pagamento confirmado - pedido {order.code}", body)
        logger.info(
            "notification.payment_email_sent",
            order_id=str(order.id),
            code=order.code,
            revision=event.revision,
        )


class StatusLogAuditHandler(IEventHandler[OrderStatusLogged]):
    def handle(self, event: OrderStatusLogged) -> None:
        logger.info(
            "notification.status_logged",
            order_id=str(event.aggregate_id),
            code=event.code,
            status=event.status,
            previous_status=event.previous_status,
            sequence=event.sequence,
            actor=event.actor,
        )


order_status_email_handler = OrderStatusEmailHandler()
payment_confirmed_email_handler = PaymentConfirmedEmailHandler()
status_log_audit_handler = StatusLogAuditHandler()
