"""Integration tests for the staff order endpoints."""

from __future__ import annotations

import pytest

from modules.deliveries.constants import AssignmentStatus
from modules.deliveries.models import DeliveryAssignment
from modules.orders.constants import OrderStatus, PaymentMethod

pytestmark = pytest.mark.integration

ADMIN_URL = "/api/v1/admin/orders/"


def _detail(order):
    return f"{ADMIN_URL}{order.id}/"


class TestAccess:
    def test_anonymous_rejected(self, api_client):
        assert api_client.get(ADMIN_URL).status_code == 401

    def test_driver_rejected(self, driver_client):
        assert driver_client.get(ADMIN_URL).status_code == 403


class TestListAndDetail:
    def test_paginated_list(self, admin_client, make_order):
        make_order()
        make_order(status=OrderStatus.SEPARANDO)

        body = admin_client.get(ADMIN_URL).json()

        assert body["count"] == 2
        assert {row["status"] for row in body["results"]} == {"RECEBIDO", "SEPARANDO"}

    def test_filter_by_status(self, admin_client, make_order):
        make_order()
        target = make_order(status=OrderStatus.SEPARANDO)

        body = admin_client.get(ADMIN_URL, {"status": "separando"}).json()

        assert [row["id"] for row in body["results"]] == [str(target.id)]

    def test_filter_by_payment_method(self, admin_client, make_order):
        make_order()
        online = make_order(payment_method=PaymentMethod.MERCADO_PAGO, correlation_id="PREF-9")

        body = admin_client.get(ADMIN_URL, {"payment_method": "MERCADO_PAGO"}).json()

        assert [row["id"] for row in body["results"]] == [str(online.id)]

    def test_search_by_code(self, admin_client, make_order):
        make_order()
        target = make_order(customer_name="João Lima", email="joao@example.com")

        body = admin_client.get(ADMIN_URL, {"search": target.code}).json()

        assert body["count"] == 1
        assert body["results"][0]["customer_name"] == "João Lima"

    def test_detail(self, admin_client, make_order):
        order = make_order()

        body = admin_client.get(_detail(order)).json()

        assert body["code"] == order.code
        assert body["qr_payload"] == f"{order.id}|{order.code}"
        assert body["whatsapp_link"].startswith("https://wa.me/5516991234567?text=")
        assert body["status_log"][0]["actor"] == "system"
        assert body["address"]["city"] == "Ribeirão Preto"
        assert body["delivery"] is None

    def test_unknown_order(self, admin_client):
        response = admin_client.get(f"{ADMIN_URL}not-a-uuid/")
        assert response.status_code == 404


class TestUpdate:
    def test_status_change(self, admin_client, make_order):
        order = make_order()

        response = admin_client.patch(
            _detail(order), {"status": "SEPARANDO", "notes": "Conferido"}, format="json"
        )

        assert response.status_code == 200
        entry = response.json()["status_log"][-1]
        assert (entry["status"], entry["note"], entry["actor"]) == (
            "SEPARANDO",
            "Conferido",
            "admin:gerente",
        )

    def test_cancel_through_patch_refused(self, admin_client, make_order):
        response = admin_client.patch(
            _detail(make_order()), {"status": "CANCELADO"}, format="json"
        )
        assert response.status_code == 400

    def test_backward_move_conflict(self, admin_client, make_order):
        order = make_order(status=OrderStatus.SAIU_PARA_ENTREGA)
        response = admin_client.patch(_detail(order), {"status": "SEPARANDO"}, format="json")
        assert response.status_code == 409
        assert response.json()["code"] == "invalid_order_status"

    def test_empty_patch(self, admin_client, make_order):
        assert admin_client.patch(_detail(make_order()), {}, format="json").status_code == 400

    def test_notes_only(self, admin_client, make_order):
        order = make_order()
        response = admin_client.patch(_detail(order), {"notes": "Portão azul"}, format="json")
        assert response.json()["notes"] == "Portão azul"
        assert len(response.json()["status_log"]) == 1

    def test_offline_payment(self, admin_client, make_order):
        order = make_order()
        response = admin_client.patch(_detail(order), {"payment_status": "PAGO"}, format="json")
        assert response.status_code == 200
        assert response.json()["payment_status"] == "PAGO"

    def test_online_payment_locked(self, admin_client, make_order):
        order = make_order(payment_method=PaymentMethod.MERCADO_PAGO, correlation_id="PREF-2")
        response = admin_client.patch(_detail(order), {"payment_status": "PAGO"}, format="json")
        assert response.status_code == 400
        assert response.json()["code"] == "payment_managed_by_gateway"


class TestCancel:
    def test_cancel_releases_driver(self, admin_client, make_order, driver):
        order = make_order()
        assignment = DeliveryAssignment.objects.create(order=order, driver=driver)

        response = admin_client.post(f"{_detail(order)}cancel/", {}, format="json")

        assert response.status_code == 200
        assert response.json()["status"] == "CANCELADO"
        assert response.json()["status_log"][-1]["note"] == "Pedido cancelado"
        assignment.refresh_from_db()
        assert assignment.status == AssignmentStatus.LIBERADA

    def test_cancel_twice(self, admin_client, make_order):
        order = make_order(status=OrderStatus.CANCELADO)
        response = admin_client.post(f"{_detail(order)}cancel/", {}, format="json")
        assert response.status_code == 409


class TestAssign:
    def test_assign_driver(self, admin_client, make_order, driver):
        order = make_order()

        response = admin_client.post(
            f"{_detail(order)}assign/", {"driver_id": driver.pk}, format="json"
        )

        assert response.status_code == 200
        delivery = response.json()["delivery"]
        assert delivery["driver_id"] == driver.pk
        assert delivery["source"] == "ADMIN"
        assert delivery["status"] == "PENDENTE"

    def test_unknown_driver(self, admin_client, make_order, admin_user):
        response = admin_client.post(
            f"{_detail(make_order())}assign/", {"driver_id": admin_user.pk}, format="json"
        )
        assert response.status_code == 404

    def test_in_route_needs_override(self, admin_client, make_order, driver, other_driver):
        order = make_order(status=OrderStatus.SAIU_PARA_ENTREGA)
        DeliveryAssignment.objects.create(
            order=order, driver=driver, status=AssignmentStatus.EM_ROTA
        )
        url = f"{_detail(order)}assign/"

        refused = admin_client.post(url, {"driver_id": other_driver.pk}, format="json")
        assert refused.status_code == 409
        assert refused.json()["code"] == "assignment_in_progress"

        forced = admin_client.post(
            url, {"driver_id": other_driver.pk, "override": True}, format="json"
        )
        assert forced.status_code == 200
        assert forced.json()["delivery"]["driver_id"] == other_driver.pk

    def test_unassign(self, admin_client, make_order, driver):
        order = make_order()
        DeliveryAssignment.objects.create(order=order, driver=driver)
        url = f"{_detail(order)}assign/"

        released = admin_client.delete(url)
        assert released.status_code == 200
        assert released.json()["delivery"] is None
        assert "message" not in released.json()

        again = admin_client.delete(url)
        assert again.json()["message"] == "Pedido não possui entregador ativo."
