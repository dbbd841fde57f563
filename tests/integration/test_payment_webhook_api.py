"""Integration tests for the payment gateway webhook."""

from __future__ import annotations

import json

import pytest

from modules.orders.constants import OrderStatus, PaymentMethod, PaymentStatus
from modules.orders.models import Order
from modules.payments.models import PaymentEvent
from modules.payments.signing import sign_payload

pytestmark = pytest.mark.integration

WEBHOOK_URL = "/api/v1/payments/webhook/"
SECRET = "test-webhook-secret"


def _post(client, payload, signature=None, secret=SECRET):
    body = json.dumps(payload).encode() if not isinstance(payload, bytes) else payload
    if signature is None:
        signature = sign_payload(secret, body)
    return client.post(
        WEBHOOK_URL, data=body, content_type="application/json", HTTP_X_SIGNATURE=signature
    )


@pytest.fixture()
def order(make_order):
    return make_order(payment_method=PaymentMethod.MERCADO_PAGO, correlation_id="PREF-777")


def _event(status="approved", revision=1):
    return {"correlationId": "PREF-777", "status": status, "revision": revision}


def test_applies_signed_event(api_client, order):
    response = _post(api_client, _event())

    assert response.status_code == 200
    assert response.json() == {"received": True}
    assert Order.objects.get(id=order.id).payment_status == PaymentStatus.PAGO


def test_prefixed_signature_accepted(api_client, order):
    body = json.dumps(_event()).encode()
    response = _post(api_client, body, signature="sha256=" + sign_payload(SECRET, body))
    assert response.status_code == 200


def test_bad_signature(api_client, order):
    response = _post(api_client, _event(), secret="outro-segredo")

    assert response.status_code == 401
    assert response.json()["code"] == "invalid_signature"
    assert Order.objects.get(id=order.id).payment_status == PaymentStatus.PENDENTE
    assert PaymentEvent.objects.count() == 0


def test_missing_signature(api_client, order):
    response = api_client.post(
        WEBHOOK_URL, data=json.dumps(_event()), content_type="application/json"
    )
    assert response.status_code == 401


@pytest.mark.parametrize(
    "payload",
    [b"not json", {"status": "approved", "revision": 1}, {**_event(), "revision": -3}],
)
def test_malformed_event(api_client, payload):
    response = _post(api_client, payload)
    assert response.status_code == 400
    assert response.json()["code"] == "malformed_payment_event"


def test_duplicate_acknowledged(api_client, order):
    _post(api_client, _event())

    response = _post(api_client, _event())

    assert response.status_code == 200
    assert PaymentEvent.objects.count() == 1
    assert Order.objects.get(id=order.id).status_log.count() == 2


def test_unknown_order_acknowledged(api_client):
    response = _post(api_client, {"correlationId": "PREF-nada", "status": "approved", "revision": 1})
    assert response.status_code == 200


def test_rejection_cancels_order(api_client, order):
    _post(api_client, _event("rejected"))

    order = Order.objects.get(id=order.id)
    assert order.payment_status == PaymentStatus.FALHOU
    assert order.status == OrderStatus.CANCELADO
