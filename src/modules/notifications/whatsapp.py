"""WhatsApp click-to-chat links for status updates (pull-based)."""

from __future__ import annotations

from typing import TYPE_CHECKING
from urllib.parse import quote

from modules.orders.constants import OrderStatus, PaymentStatus

if TYPE_CHECKING:
    from modules.orders.models import Order

WHATSAPP_BASE_URL = "https://wa.me/"
BRAZIL_COUNTRY_CODE = "55"


def normalize_phone(phone: str) -> str:
    """Digits only, with the Brazilian country code for local numbers."""
    digits = "".join(ch for ch in phone or "" if ch.isdigit())
    if len(digits) in (10, 11):
        digits = BRAZIL_COUNTRY_CODE + digits
    return digits


def build_whatsapp_link(phone: str, message: str) -> str:
    return f"{WHATSAPP_BASE_URL}{normalize_phone(phone)}?text={quote(message, safe='')}"


def order_status_message(order: Order) -> str:
    first_name = (order.customer_name or "").split(" ")[0]
    status_label = OrderStatus(order.status).label
    payment_label = PaymentStatus(order.payment_status).label
    return (
        f"Olá {first_name}! Seu pedido {order.code} está: {status_label}. "
        f"Pagamento: {payment_label}."
    )


def order_status_whatsapp_link(order: Order) -> str:
    return build_whatsapp_link(order.customer_phone, order_status_message(order))
