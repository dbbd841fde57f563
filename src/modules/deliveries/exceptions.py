"""Delivery assignment exceptions."""

from __future__ import annotations

from shared.domain.exceptions import ConflictError, NotFoundError, ValidationError


class AlreadyAssigned(ConflictError):
    """Another driver holds the order's active assignment."""

    code = "already_assigned"
    default_message = "Este pedido já foi atribuído a outro entregador."


class OrderNotClaimable(ConflictError):
    code = "order_not_claimable"
    default_message = "Este pedido não está disponível para entrega."


class AssignmentInProgress(ConflictError):
    """Reassigning an EM_ROTA delivery needs an explicit override."""

    code = "assignment_in_progress"
    default_message = (
        "A entrega já está em rota; confirme a substituição do entregador."
    )


class InvalidAssignmentTransition(ConflictError):
    code = "invalid_assignment_transition"
    default_message = "Transição de status da entrega não permitida."


class StaleAssignment(ConflictError):
    code = "stale_assignment"
    default_message = "A entrega foi alterada por outra pessoa. Recarregue e tente novamente."


class RecipientNameRequired(ValidationError):
    code = "recipient_name_required"
    default_message = "Informe o nome de quem recebeu a entrega."


class InvalidQrPayload(ValidationError):
    code = "invalid_qr_payload"
    default_message = "QR code inválido."


class AssignmentNotFound(NotFoundError):
    default_message = "Entrega não encontrada."


class DriverNotFound(NotFoundError):
    default_message = "Entregador não encontrado ou inativo."
