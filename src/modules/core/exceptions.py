"""DRF exception handler translating domain errors into HTTP responses.

Views catch the errors they expect and answer explicitly; this handler
covers domain errors that escape a view so they never become a 500.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

import structlog
from pydantic import ValidationError as PydanticValidationError
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

from shared.domain.exceptions import (
    ConflictError,
    DomainError,
    NotFoundError,
    ShippingRejected,
    UpstreamError,
    ValidationError,
)

logger = structlog.get_logger(__name__)

_STATUS_BY_ERROR = (
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ConflictError, status.HTTP_409_CONFLICT),
    (ShippingRejected, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (UpstreamError, status.HTTP_503_SERVICE_UNAVAILABLE),
)


def http_status_for(exc: DomainError) -> int:
    for error_cls, http_status in _STATUS_BY_ERROR:
        if isinstance(exc, error_cls):
            return http_status
    return status.HTTP_400_BAD_REQUEST


def error_body(exc: DomainError, **extra: Any) -> Dict[str, Any]:
    body: Dict[str, Any] = {"detail": exc.message, "code": exc.code}
    body.update(extra)
    return body


def error_response(exc: DomainError, **extra: Any) -> Response:
    """Build the standard error response for a domain error."""
    return Response(error_body(exc, **extra), status=http_status_for(exc))


def domain_exception_handler(
    exc: Exception, context: Dict[str, Any]
) -> Optional[Response]:
    if isinstance(exc, DomainError):
        view = context.get("view")
        logger.warning(
            "api.domain_error",
            error_code=exc.code,
            view=type(view).__name__ if view else None,
        )
        return error_response(exc)
    if isinstance(exc, PydanticValidationError):
        return validation_error_response(exc)
    return exception_handler(exc, context)


def validation_error_response(exc: PydanticValidationError) -> Response:
    """400 response for a DTO that rejected already-parsed input."""
    errors = [
        {
            "field": ".".join(str(part) for part in error["loc"]),
            "message": error["msg"],
        }
        for error in exc.errors()
    ]
    message = errors[0]["message"] if errors else ValidationError.default_message
    return Response(
        {"detail": message, "code": ValidationError.code, "errors": errors},
        status=status.HTTP_400_BAD_REQUEST,
    )
