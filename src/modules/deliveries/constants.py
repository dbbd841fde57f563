"""Delivery assignment constants.

An order has at most one *active* assignment (``PENDENTE`` or
``EM_ROTA``).  Replaced or unassigned rows become ``LIBERADA`` and stay
as history.
"""

from django.db import models

from modules.orders.constants import OrderStatus


class AssignmentStatus(models.TextChoices):
    PENDENTE = "PENDENTE", "Pendente"
    EM_ROTA = "EM_ROTA", "Em rota"
    ENTREGUE = "ENTREGUE", "Entregue"
    LIBERADA = "LIBERADA", "Liberada"


class AssignmentSource(models.TextChoices):
    QR_SCAN = "QR_SCAN", "Leitura de QR code"
    ADMIN = "ADMIN", "Atribuição manual"


ACTIVE_ASSIGNMENT_STATUSES: set[str] = {
    AssignmentStatus.PENDENTE,
    AssignmentStatus.EM_ROTA,
}

# Transitions a driver may request through ``advance``.
ASSIGNMENT_TRANSITIONS: dict[str, set[str]] = {
    AssignmentStatus.PENDENTE: {AssignmentStatus.EM_ROTA, AssignmentStatus.ENTREGUE},
    AssignmentStatus.EM_ROTA: {AssignmentStatus.ENTREGUE},
    AssignmentStatus.ENTREGUE: set(),
    AssignmentStatus.LIBERADA: set(),
}

CLAIMABLE_ORDER_STATUSES: set[str] = {
    OrderStatus.RECEBIDO,
    OrderStatus.SEPARANDO,
    OrderStatus.SAIU_PARA_ENTREGA,
}

# Order status each assignment step drives the order to.
ORDER_STATUS_FOR_ASSIGNMENT: dict[str, str] = {
    AssignmentStatus.EM_ROTA: OrderStatus.SAIU_PARA_ENTREGA,
    AssignmentStatus.ENTREGUE: OrderStatus.ENTREGUE,
}

SCAN_DEDUP_WINDOW_SECONDS = 5.0
SCAN_CLIENT_TIMEOUT_SECONDS = 10.0
