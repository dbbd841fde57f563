from decimal import Decimal
from unittest.mock import MagicMock
from uuid import UUID

import pytest
import requests

from modules.payments.exceptions import PaymentGatewayError
from modules.payments.gateway import (
    MercadoPagoGateway,
    PaymentIntent,
    PaymentLine,
    PaymentRequest,
)
from shared.domain.exceptions import UpstreamTimeout

pytestmark = pytest.mark.unit

ORDER_ID = UUID("7d0c2f1e-8f4a-4a52-9a57-3d2a1c0b9e11")


def _request():
    return PaymentRequest(
        order_id=ORDER_ID,
        order_code="EJGABC234",
        amount=Decimal("23.00"),
        payer_name="Maria Souza",
        payer_email="maria@example.com",
        lines=[
            PaymentLine("Cerveja Lata 350ml", 4, Decimal("4.50")),
            PaymentLine("Frete", 1, Decimal("5.00")),
        ],
    )


def _response(payload, ok=True, status_code=201):
    response = MagicMock()
    response.ok = ok
    response.status_code = status_code
    response.json.return_value = payload
    return response


def _gateway(session, token="APP_USR-token"):
    return MercadoPagoGateway(
        base_url="https://api.mercadopago.example/",
        access_token=token,
        site_url="https://loja.example.com",
        timeout=8.0,
        session=session,
    )


def test_creates_preference():
    session = MagicMock()
    session.post.return_value = _response(
        {"id": "PREF-1", "init_point": "https://mp.example/checkout?pref=PREF-1"}
    )

    intent = _gateway(session).create_payment(_request())

    assert intent == PaymentIntent(
        redirect_url="https://mp.example/checkout?pref=PREF-1", correlation_id="PREF-1"
    )
    call = session.post.call_args
    assert call.args[0] == "https://api.mercadopago.example/checkout/preferences"
    assert call.kwargs["headers"]["Authorization"] == "Bearer APP_USR-token"
    assert call.kwargs["timeout"] == 8.0

    payload = call.kwargs["json"]
    assert payload["external_reference"] == str(ORDER_ID)
    assert payload["items"][0]["unit_price"] == 4.5
    assert payload["items"][1] == {
        "title": "Frete",
        "quantity": 1,
        "unit_price": 5.0,
        "currency_id": "BRL",
    }
    assert payload["notification_url"] == "https://loja.example.com/api/v1/payments/webhook/"
    assert payload["back_urls"]["success"].startswith("https://loja.example.com/checkout?status=success")
    assert "order=EJGABC234" in payload["back_urls"]["failure"]


def test_sandbox_init_point_accepted():
    session = MagicMock()
    session.post.return_value = _response(
        {"id": 42, "sandbox_init_point": "https://sandbox.mp.example/c"}
    )
    intent = _gateway(session).create_payment(_request())
    assert intent.correlation_id == "42"


def test_missing_token():
    session = MagicMock()
    with pytest.raises(PaymentGatewayError):
        _gateway(session, token="").create_payment(_request())
    session.post.assert_not_called()


def test_timeout():
    session = MagicMock()
    session.post.side_effect = requests.Timeout()
    with pytest.raises(UpstreamTimeout):
        _gateway(session).create_payment(_request())


def test_connection_error():
    session = MagicMock()
    session.post.side_effect = requests.ConnectionError()
    with pytest.raises(PaymentGatewayError):
        _gateway(session).create_payment(_request())


def test_rejected_by_gateway():
    session = MagicMock()
    session.post.return_value = _response({"message": "invalid"}, ok=False, status_code=400)
    with pytest.raises(PaymentGatewayError):
        _gateway(session).create_payment(_request())


def test_incomplete_response():
    session = MagicMock()
    session.post.return_value = _response({"id": "PREF-1"})
    with pytest.raises(PaymentGatewayError):
        _gateway(session).create_payment(_request())
