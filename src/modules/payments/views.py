"""Payment gateway webhook.

Acknowledges fast with ``200 {"received": true}`` for every authentic
event, including duplicates, stale revisions, regressions and unknown
orders, so the gateway stops redelivering.  Only a bad signature or an
unreadable body is refused.
"""

from __future__ import annotations

import json

import structlog
from django.conf import settings
from pydantic import ValidationError as PydanticValidationError
from rest_framework import status
from rest_framework.permissions import AllowAny
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from modules.core.exceptions import error_response
from modules.payments.constants import SIGNATURE_HEADER
from modules.payments.dtos import GatewayEventDTO
from modules.payments.exceptions import InvalidSignature, MalformedPaymentEvent
from modules.payments.services import build_payment_reconciler
from modules.payments.signing import verify_signature

logger = structlog.get_logger(__name__)


class PaymentWebhookView(APIView):
    """POST /api/v1/payments/webhook/"""

    permission_classes = [AllowAny]
    authentication_classes: list = []
    throttle_classes: list = []

    def post(self, request: Request) -> Response:
        raw = request.body
        signature = request.headers.get(SIGNATURE_HEADER)
        if not verify_signature(settings.PAYMENT_WEBHOOK_SECRET, raw, signature):
            logger.warning("payment.webhook_bad_signature")
            return Response(
                {"detail": InvalidSignature.default_message, "code": InvalidSignature.code},
                status=status.HTTP_401_UNAUTHORIZED,
            )

        try:
            event = GatewayEventDTO.model_validate(json.loads(raw or b"{}"))
        except (ValueError, PydanticValidationError):
            logger.warning("payment.webhook_malformed")
            return error_response(MalformedPaymentEvent())

        result = build_payment_reconciler().apply(event)
        logger.info(
            "payment.webhook_processed",
            correlation_id=event.correlation_id,
            revision=event.revision,
            outcome=result.outcome,
        )
        return Response({"received": True})
