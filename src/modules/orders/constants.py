"""Order domain constants.

Order status only moves forward: an admin may skip ahead (e.g. straight
from ``RECEBIDO`` to ``SAIU_PARA_ENTREGA``) but never back.  ``CANCELADO``
is reachable from every non-terminal state.  Payment status evolves in
parallel and never collapses into the order status.
"""

from django.db import models


class OrderStatus(models.TextChoices):
    RECEBIDO = "RECEBIDO", "Recebido"
    SEPARANDO = "SEPARANDO", "Separando"
    SAIU_PARA_ENTREGA = "SAIU_PARA_ENTREGA", "Saiu para entrega"
    ENTREGUE = "ENTREGUE", "Entregue"
    CANCELADO = "CANCELADO", "Cancelado"


VALID_TRANSITIONS: dict[str, set[str]] = {
    OrderStatus.RECEBIDO: {
        OrderStatus.SEPARANDO,
        OrderStatus.SAIU_PARA_ENTREGA,
        OrderStatus.ENTREGUE,
        OrderStatus.CANCELADO,
    },
    OrderStatus.SEPARANDO: {
        OrderStatus.SAIU_PARA_ENTREGA,
        OrderStatus.ENTREGUE,
        OrderStatus.CANCELADO,
    },
    OrderStatus.SAIU_PARA_ENTREGA: {OrderStatus.ENTREGUE, OrderStatus.CANCELADO},
    OrderStatus.ENTREGUE: set(),
    OrderStatus.CANCELADO: set(),
}

TERMINAL_STATES: set[str] = {OrderStatus.ENTREGUE, OrderStatus.CANCELADO}

# Position in the forward path; CANCELADO sits outside it.
STATUS_RANK: dict[str, int] = {
    OrderStatus.RECEBIDO: 0,
    OrderStatus.SEPARANDO: 1,
    OrderStatus.SAIU_PARA_ENTREGA: 2,
    OrderStatus.ENTREGUE: 3,
}

# Payment failure cancels only orders that have not left the store.
AUTO_CANCEL_ON_PAYMENT_FAILURE: set[str] = {
    OrderStatus.RECEBIDO,
    OrderStatus.SEPARANDO,
}


class PaymentStatus(models.TextChoices):
    PENDENTE = "PENDENTE", "Pendente"
    PAGO = "PAGO", "Pago"
    FALHOU = "FALHOU", "Falhou"
    ESTORNADO = "ESTORNADO", "Estornado"


PAYMENT_TRANSITIONS: dict[str, set[str]] = {
    PaymentStatus.PENDENTE: {
        PaymentStatus.PAGO,
        PaymentStatus.FALHOU,
        PaymentStatus.ESTORNADO,
    },
    PaymentStatus.PAGO: {PaymentStatus.ESTORNADO},
    PaymentStatus.FALHOU: set(),
    PaymentStatus.ESTORNADO: set(),
}


class PaymentMethod(models.TextChoices):
    MERCADO_PAGO = "MERCADO_PAGO", "Mercado Pago"
    PIX_NA_ENTREGA = "PIX_NA_ENTREGA", "PIX na entrega"
    DINHEIRO = "DINHEIRO", "Dinheiro"
    CARTAO_NA_ENTREGA = "CARTAO_NA_ENTREGA", "Cartão na entrega"


ONLINE_PAYMENT_METHODS: set[str] = {PaymentMethod.MERCADO_PAGO}

# Customer-facing order code: prefix + base-32 suffix.
ORDER_CODE_PREFIX = "EJG"
ORDER_CODE_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ234567"
ORDER_CODE_LENGTH = 6
ORDER_CODE_MAX_RETRIES = 5

QR_SEPARATOR = "|"

PAYMENT_LOG_NOTES: dict[str, str] = {
    PaymentStatus.PENDENTE: "Pagamento pendente",
    PaymentStatus.PAGO: "Pagamento aprovado",
    PaymentStatus.FALHOU: "Pagamento recusado",
    PaymentStatus.ESTORNADO: "Pagamento estornado",
}
