"""Payment gateway client.

``create_payment`` runs inside the checkout transaction: if the gateway
is slow or refuses, ``PaymentGatewayError``/``UpstreamTimeout`` rolls the
whole checkout back, so no order exists without its payment intent.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Optional
from urllib.parse import urlencode, urljoin
from uuid import UUID

import requests
import structlog
from django.conf import settings

from modules.core.middleware import outbound_headers
from modules.payments.exceptions import PaymentGatewayError
from shared.domain.exceptions import UpstreamTimeout

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class PaymentLine:
    title: str
    quantity: int
    unit_price: Decimal


@dataclass(frozen=True)
class PaymentRequest:
    order_id: UUID
    order_code: str
    amount: Decimal
    payer_name: str
    payer_email: str
    lines: List[PaymentLine] = field(default_factory=list)


@dataclass(frozen=True)
class PaymentIntent:
    redirect_url: str
    correlation_id: str


class PaymentGateway(ABC):
    @abstractmethod
    def create_payment(self, request: PaymentRequest) -> PaymentIntent:
        """Open a payment for the order and return where to send the payer.

        Raises:
            PaymentGatewayError: the gateway refused or answered garbage.
            UpstreamTimeout: the gateway did not answer in time.
        """


class MercadoPagoGateway(PaymentGateway):
    """Checkout Pro preferences (``POST /checkout/preferences``).

    The preference id is the correlation id: webhooks are matched to the
    order by it, never by the order code.
    """

    def __init__(
        self,
        base_url: str,
        access_token: str,
        site_url: str,
        timeout: float,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._access_token = access_token
        self._site_url = site_url.rstrip("/") + "/"
        self._timeout = timeout
        self._session = session or requests.Session()

    @classmethod
    def from_settings(cls) -> "MercadoPagoGateway":
        return cls(
            base_url=settings.PAYMENT_GATEWAY_BASE_URL,
            access_token=settings.PAYMENT_GATEWAY_ACCESS_TOKEN,
            site_url=settings.SITE_URL,
            timeout=settings.PAYMENT_GATEWAY_TIMEOUT_SECONDS,
        )

    def create_payment(self, request: PaymentRequest) -> PaymentIntent:
        if not self._access_token:
            raise PaymentGatewayError("Mercado Pago não configurado.")

        log = logger.bind(order_id=str(request.order_id), code=request.order_code)
        headers = {
            "Authorization": f"Bearer {self._access_token}",
            "Content-Type": "application/json",
            **outbound_headers(),
        }
        try:
            response = self._session.post(
                f"{self._base_url}/checkout/preferences",
                json=self._preference_payload(request),
                headers=headers,
                timeout=self._timeout,
            )
        except requests.Timeout as exc:
            log.warning("payment.gateway_timeout")
            raise UpstreamTimeout(
                "O gateway de pagamento não respondeu. Tente novamente."
            ) from exc
        except requests.RequestException as exc:
            log.warning("payment.gateway_unreachable", error=str(exc))
            raise PaymentGatewayError() from exc

        if not response.ok:
            log.warning("payment.gateway_rejected", status_code=response.status_code)
            raise PaymentGatewayError()

        try:
            data = response.json()
        except ValueError as exc:
            raise PaymentGatewayError() from exc

        redirect_url = data.get("init_point") or data.get("sandbox_init_point")
        correlation_id = data.get("id")
        if not redirect_url or not correlation_id:
            log.warning("payment.gateway_incomplete_response")
            raise PaymentGatewayError(
                "Mercado Pago não retornou URL de pagamento."
            )

        log.info("payment.intent_created", correlation_id=str(correlation_id))
        return PaymentIntent(
            redirect_url=str(redirect_url), correlation_id=str(correlation_id)
        )

    def _preference_payload(self, request: PaymentRequest) -> Dict[str, Any]:
        back_urls = {
            outcome: self._checkout_url(outcome, request)
            for outcome in ("success", "pending", "failure")
        }
        return {
            "items": [
                {
                    "title": line.title,
                    "quantity": line.quantity,
                    # Wire format requires a JSON number.
                    "unit_price": float(line.unit_price),
                    "currency_id": "BRL",
                }
                for line in request.lines
            ],
            "payer": {"name": request.payer_name, "email": request.payer_email},
            "external_reference": str(request.order_id),
            "back_urls": back_urls,
            "notification_url": urljoin(self._site_url, "api/v1/payments/webhook/"),
        }

    def _checkout_url(self, outcome: str, request: PaymentRequest) -> str:
        query = urlencode(
            {
                "status": outcome,
                "order": request.order_code,
                "orderId": str(request.order_id),
            }
        )
        return f"{urljoin(self._site_url, 'checkout')}?{query}"


def build_payment_gateway() -> PaymentGateway:
    return MercadoPagoGateway.from_settings()
