"""Error taxonomy shared by every bounded context.

Each context specialises these classes in its own ``exceptions.py``.
Views translate them into HTTP responses; anything that escapes a view
is handled by ``modules.core.exceptions.domain_exception_handler``.

- ``ValidationError``: malformed input, never retried.
- ``ConflictError``: state conflict, resolved by a human, never retried.
- ``ShippingRejected``: checkout-blocking shipping outcome.
- ``UpstreamError``: an external collaborator failed or timed out.
- ``IdempotencyViolation``: internal guard, never surfaced.
"""

from __future__ import annotations

from typing import Optional


class DomainError(Exception):
    """Base class for expected business failures."""

    code = "domain_error"
    default_message = "Business rule violated."

    def __init__(self, message: Optional[str] = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(DomainError):
    code = "validation_error"
    default_message = "Invalid data."


class NotFoundError(DomainError):
    code = "not_found"
    default_message = "Resource not found."


class ConflictError(DomainError):
    code = "conflict"
    default_message = "The resource changed state; reload and try again."


class ShippingRejected(DomainError):
    code = "shipping_rejected"
    default_message = "Shipping is not available for this address."


class UpstreamError(DomainError):
    code = "upstream_error"
    default_message = "External service unavailable. Try again."


class UpstreamTimeout(UpstreamError):
    code = "upstream_timeout"
    default_message = "External service timed out. Try again."


class IdempotencyViolation(DomainError):
    code = "idempotency_violation"
    default_message = "Event already applied or out of order."


class UpstreamUnavailable(UpstreamError):
    code = "upstream_unavailable"
    default_message = "External service unavailable. Try again."
