"""Payment domain exceptions."""

from __future__ import annotations

from shared.domain.exceptions import (
    ConflictError,
    IdempotencyViolation,
    UpstreamError,
    ValidationError,
)


class InvalidSignature(ValidationError):
    code = "invalid_signature"
    default_message = "Invalid webhook signature."


class MalformedPaymentEvent(ValidationError):
    code = "malformed_payment_event"
    default_message = "Malformed payment event."


class PaymentRegression(ConflictError):
    """A status the payment table does not allow (e.g. FALHOU after PAGO)."""

    code = "payment_regression"
    default_message = "Payment status regression rejected."


class ReplayedPaymentEvent(IdempotencyViolation):
    """Revision already applied (duplicate or out-of-order delivery)."""

    def __init__(self, outcome: str) -> None:
        super().__init__(f"Payment event dropped: {outcome}.")
        self.outcome = outcome


class PaymentGatewayError(UpstreamError):
    code = "payment_gateway_error"
    default_message = "Não foi possível iniciar o pagamento. Tente novamente."
