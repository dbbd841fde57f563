"""Integration tests for checkout and public tracking."""

from __future__ import annotations

import pytest

from modules.deliveries.models import DeliveryAssignment
from modules.orders.constants import OrderStatus, PaymentMethod
from modules.orders.models import Order
from modules.payments.exceptions import PaymentGatewayError

pytestmark = pytest.mark.integration

CHECKOUT_URL = "/api/v1/orders/"


def _track_url(code):
    return f"/api/v1/orders/track/{code}/"


@pytest.fixture(autouse=True)
def _collaborators(fake_geocoder, fake_gateway, shipping_setup):
    """Checkout quotes and charges through in-memory fakes."""


class TestCheckout:
    def test_creates_order(self, api_client, checkout_payload):
        response = api_client.post(CHECKOUT_URL, checkout_payload(), format="json")

        assert response.status_code == 201
        body = response.json()
        assert body["payment_redirect_url"] is None
        order = Order.objects.get(id=body["order_id"])
        assert order.code == body["order_code"]
        assert order.total == 23
        assert order.address.zip_code == "14010000"

    def test_client_prices_ignored(self, api_client, checkout_payload, product):
        payload = checkout_payload(
            items=[{"product_id": str(product.id), "quantity": 4, "unit_price": "0.01"}],
            shipping_price="0.00",
        )
        response = api_client.post(CHECKOUT_URL, payload, format="json")

        order = Order.objects.get(id=response.json()["order_id"])
        assert str(order.subtotal) == "18.00"
        assert str(order.shipping_price) == "5.00"

    def test_idempotency_key_replay(self, api_client, checkout_payload):
        first = api_client.post(
            CHECKOUT_URL, checkout_payload(), format="json", HTTP_IDEMPOTENCY_KEY="k-1"
        )
        second = api_client.post(
            CHECKOUT_URL, checkout_payload(), format="json", HTTP_IDEMPOTENCY_KEY="k-1"
        )

        assert first.status_code == 201
        assert second.status_code == 200
        assert second.json()["order_id"] == first.json()["order_id"]
        assert Order.objects.count() == 1

    def test_out_of_range_blocks_checkout(self, api_client, checkout_payload):
        payload = checkout_payload()
        payload["address"] = {**payload["address"], "zip_code": "01310-100"}

        response = api_client.post(CHECKOUT_URL, payload, format="json")

        assert response.status_code == 422
        assert response.json()["code"] == "out_of_range"
        assert response.json()["distance_km"] == "250.00"
        assert Order.objects.count() == 0

    def test_insufficient_stock(self, api_client, checkout_payload, product):
        payload = checkout_payload(items=[{"product_id": str(product.id), "quantity": 51}])
        response = api_client.post(CHECKOUT_URL, payload, format="json")
        assert response.status_code == 400
        assert response.json()["code"] == "insufficient_stock"

    def test_empty_cart(self, api_client, checkout_payload):
        response = api_client.post(CHECKOUT_URL, checkout_payload(items=[]), format="json")
        assert response.status_code == 400

    def test_online_payment_redirect(self, api_client, checkout_payload):
        response = api_client.post(
            CHECKOUT_URL,
            checkout_payload(payment_method=PaymentMethod.MERCADO_PAGO),
            format="json",
        )

        assert response.status_code == 201
        code = response.json()["order_code"]
        assert response.json()["payment_redirect_url"] == (
            f"https://pagamento.example.com/checkout/{code}"
        )

    def test_gateway_failure_creates_nothing(self, api_client, checkout_payload, fake_gateway):
        fake_gateway.error = PaymentGatewayError()

        response = api_client.post(
            CHECKOUT_URL,
            checkout_payload(payment_method=PaymentMethod.MERCADO_PAGO),
            format="json",
        )

        assert response.status_code == 503
        assert response.json()["code"] == "payment_gateway_error"
        assert Order.objects.count() == 0


class TestTracking:
    def test_by_email(self, api_client, make_order):
        order = make_order(status=OrderStatus.SEPARANDO)

        response = api_client.get(_track_url(order.code), {"email": "maria@example.com"})

        assert response.status_code == 200
        body = response.json()
        assert body["code"] == order.code
        assert body["status_label"] == "Separando"
        assert [entry["status"] for entry in body["timeline"]] == ["RECEBIDO", "SEPARANDO"]
        assert body["delivery"] is None
        for private in ("notes", "customer_email", "id", "status_log"):
            assert private not in body
        assert "actor" not in body["timeline"][0]

    def test_by_phone(self, api_client, make_order):
        order = make_order()
        response = api_client.get(_track_url(order.code.lower()), {"phone": "16 99123-4567"})
        assert response.status_code == 200

    def test_identity_required(self, api_client, make_order):
        response = api_client.get(_track_url(make_order().code))
        assert response.status_code == 400
        assert response.json()["code"] == "tracking_identity_required"

    def test_mismatch_is_not_found(self, api_client, make_order):
        response = api_client.get(_track_url(make_order().code), {"email": "x@example.com"})
        assert response.status_code == 404

    def test_shows_driver_first_name_only(self, api_client, make_order, driver):
        order = make_order()
        DeliveryAssignment.objects.create(order=order, driver=driver)

        delivery = api_client.get(_track_url(order.code), {"email": "maria@example.com"}).json()[
            "delivery"
        ]

        assert delivery["driver_first_name"] == "Carlos"
        assert delivery["status"] == "PENDENTE"
        assert "driver_id" not in delivery
