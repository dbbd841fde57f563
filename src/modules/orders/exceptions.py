"""Order domain exceptions.

Raised by the Service Layer when business rules are violated.
The API layer (Views) catches these and translates them into
appropriate HTTP responses.
"""

from __future__ import annotations

from shared.domain.exceptions import ConflictError, NotFoundError, ValidationError


class OrderNotFound(NotFoundError):
    """The order does not exist, or the tracking identity did not match."""

    default_message = "Pedido não encontrado."


class InvalidOrderStatus(ConflictError):
    """The transition is not allowed by the order state machine."""

    code = "invalid_order_status"
    default_message = "Transição de status não permitida."


class StaleOrderStatus(ConflictError):
    """Another actor changed the order status first."""

    code = "stale_order_status"
    default_message = "O pedido foi alterado por outra pessoa. Recarregue e tente novamente."


class ProductUnavailable(ValidationError):
    """A product in the cart is unknown or inactive."""

    code = "product_unavailable"
    default_message = "Produto indisponível."


class InsufficientStock(ValidationError):
    code = "insufficient_stock"
    default_message = "Estoque insuficiente."


class TrackingIdentityRequired(ValidationError):
    code = "tracking_identity_required"
    default_message = "Informe o e-mail ou telefone usado no pedido."


class InvalidPaymentStatus(ConflictError):
    """Manual payment update rejected by the payment transition table."""

    code = "invalid_payment_status"
    default_message = "Alteração de status de pagamento não permitida."


class OnlinePaymentManagedByGateway(ValidationError):
    code = "payment_managed_by_gateway"
    default_message = (
        "O status de pagamentos online é atualizado apenas pelo gateway."
    )
