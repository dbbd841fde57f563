"""Unit tests for DeliveryService.

Covers:
- Claim by QR reference: first claimant wins, repeats are idempotent.
- A claim that loses the race on the active-assignment index sees the
  winner.
- Driver progress (EM_ROTA, ENTREGUE) drives the order status.
- Admin assignment: PENDENTE holders are replaced, EM_ROTA needs override.
- Release on unassign; listing per driver.
"""

from __future__ import annotations

from datetime import datetime
from datetime import timezone as dt_timezone
from unittest.mock import patch
from uuid import uuid4

import pytest
from django.db import IntegrityError, transaction
from freezegun import freeze_time

from modules.deliveries.constants import AssignmentSource, AssignmentStatus
from modules.deliveries.exceptions import (
    AlreadyAssigned,
    AssignmentInProgress,
    AssignmentNotFound,
    DriverNotFound,
    InvalidAssignmentTransition,
    OrderNotClaimable,
    RecipientNameRequired,
)
from modules.deliveries.models import DeliveryAssignment
from modules.deliveries.qrcode import OrderRef
from modules.deliveries.services import build_delivery_service
from modules.orders.constants import OrderStatus
from modules.orders.exceptions import OrderNotFound
from modules.orders.models import Order, OrderStatusLog

pytestmark = pytest.mark.unit


@pytest.fixture()
def service():
    return build_delivery_service()


def _ref(order):
    return OrderRef(order_id=order.id, order_code=order.code)


class TestClaim:
    def test_first_claim_creates_assignment(self, service, make_order, driver):
        order = make_order()

        assignment, created = service.claim(_ref(order), driver)

        assert created is True
        assert assignment.status == AssignmentStatus.PENDENTE
        assert assignment.source == AssignmentSource.QR_SCAN
        assert assignment.driver_id == driver.pk
        assert OrderStatusLog.objects.filter(order=order).count() == 1

    def test_repeat_claim_returns_same_assignment(self, service, make_order, driver):
        order = make_order()
        first, _ = service.claim(_ref(order), driver)

        again, created = service.claim(_ref(order), driver)

        assert created is False
        assert again.id == first.id
        assert DeliveryAssignment.objects.count() == 1

    def test_other_driver_refused(self, service, make_order, driver, other_driver):
        order = make_order()
        service.claim(_ref(order), driver)

        with pytest.raises(AlreadyAssigned):
            service.claim(_ref(order), other_driver)

    def test_code_must_match_id(self, service, make_order, driver):
        order = make_order()
        with pytest.raises(OrderNotFound):
            service.claim(OrderRef(order.id, "EJGZZZZZZ"), driver)

    def test_unknown_order(self, service, driver):
        with pytest.raises(OrderNotFound):
            service.claim(OrderRef(uuid4(), "EJGZZZZZZ"), driver)

    @pytest.mark.parametrize("status", [OrderStatus.ENTREGUE, OrderStatus.CANCELADO])
    def test_terminal_order_not_claimable(self, service, make_order, driver, status):
        order = make_order(status=status)
        with pytest.raises(OrderNotClaimable):
            service.claim(_ref(order), driver)

    def test_claimable_again_after_release(self, service, make_order, driver, other_driver):
        order = make_order()
        service.claim(_ref(order), driver)
        service.unassign(order.id)

        assignment, created = service.claim(_ref(order), other_driver)

        assert created is True
        assert assignment.driver_id == other_driver.pk


class TestClaimRace:
    """A competing claim lands between the holder lookup and the insert."""

    def _lose_first_lookup(self, service):
        real_lookup = service._assignments.get_active_for_order
        calls = []

        def lookup(order_id):
            calls.append(order_id)
            return None if len(calls) == 1 else real_lookup(order_id)

        return patch.object(service._assignments, "get_active_for_order", side_effect=lookup)

    def test_loser_gets_already_assigned(self, service, make_order, driver, other_driver):
        order = make_order()
        winner = DeliveryAssignment.objects.create(order=order, driver=other_driver)

        with self._lose_first_lookup(service), pytest.raises(AlreadyAssigned):
            service.claim(_ref(order), driver)

        active = DeliveryAssignment.objects.filter(
            order=order, status__in=[AssignmentStatus.PENDENTE, AssignmentStatus.EM_ROTA]
        )
        assert list(active.values_list("id", flat=True)) == [winner.id]

    def test_same_driver_race_is_idempotent(self, service, make_order, driver):
        order = make_order()
        existing = DeliveryAssignment.objects.create(order=order, driver=driver)

        with self._lose_first_lookup(service):
            assignment, created = service.claim(_ref(order), driver)

        assert created is False
        assert assignment.id == existing.id
        assert DeliveryAssignment.objects.filter(order=order).count() == 1


class TestActiveAssignmentConstraint:
    @pytest.mark.parametrize("status", [AssignmentStatus.PENDENTE, AssignmentStatus.EM_ROTA])
    def test_second_active_row_rejected(self, make_order, driver, other_driver, status):
        order = make_order()
        DeliveryAssignment.objects.create(order=order, driver=driver)

        with pytest.raises(IntegrityError), transaction.atomic():
            DeliveryAssignment.objects.create(order=order, driver=other_driver, status=status)

    def test_released_rows_do_not_count(self, make_order, driver, other_driver):
        order = make_order()
        DeliveryAssignment.objects.create(
            order=order, driver=driver, status=AssignmentStatus.LIBERADA
        )

        DeliveryAssignment.objects.create(order=order, driver=other_driver)

        assert DeliveryAssignment.objects.filter(order=order).count() == 2


class TestAdvance:
    def test_em_rota_moves_order_out_for_delivery(self, service, make_order, driver):
        order = make_order(status=OrderStatus.SEPARANDO)
        assignment, _ = service.claim(_ref(order), driver)

        updated = service.advance(assignment.id, AssignmentStatus.EM_ROTA, driver)

        assert updated.status == AssignmentStatus.EM_ROTA
        assert updated.started_at is not None
        order = Order.objects.get(id=order.id)
        assert order.status == OrderStatus.SAIU_PARA_ENTREGA
        entry = order.status_log.last()
        assert entry.note == "Em rota com Carlos"
        assert entry.actor == "driver:carlos"

    def test_em_rota_when_order_already_out(self, service, make_order, driver):
        order = make_order(status=OrderStatus.SAIU_PARA_ENTREGA)
        assignment, _ = service.claim(_ref(order), driver)
        log_size = OrderStatusLog.objects.filter(order=order).count()

        service.advance(assignment.id, AssignmentStatus.EM_ROTA, driver)

        assert OrderStatusLog.objects.filter(order=order).count() == log_size

    def test_delivery_requires_recipient(self, service, make_order, driver):
        order = make_order()
        assignment, _ = service.claim(_ref(order), driver)

        with pytest.raises(RecipientNameRequired):
            service.advance(assignment.id, AssignmentStatus.ENTREGUE, driver, recipient_name="  ")

    def test_delivered(self, service, make_order, driver):
        order = make_order()
        assignment, _ = service.claim(_ref(order), driver)
        with freeze_time("2026-03-10 14:00:00"):
            service.advance(assignment.id, AssignmentStatus.EM_ROTA, driver)

        with freeze_time("2026-03-10 14:35:00"):
            done = service.advance(
                assignment.id, AssignmentStatus.ENTREGUE, driver, recipient_name="Joana"
            )

        assert done.status == AssignmentStatus.ENTREGUE
        assert done.started_at == datetime(2026, 3, 10, 14, 0, tzinfo=dt_timezone.utc)
        assert done.delivered_at == datetime(2026, 3, 10, 14, 35, tzinfo=dt_timezone.utc)
        assert done.recipient_name == "Joana"
        order = Order.objects.get(id=order.id)
        assert order.status == OrderStatus.ENTREGUE
        assert order.status_log.last().note == "Entregue por Carlos. Recebido por: Joana"

    def test_driver_notes_appended_to_log(self, service, make_order, driver):
        order = make_order()
        assignment, _ = service.claim(_ref(order), driver)

        service.advance(assignment.id, AssignmentStatus.EM_ROTA, driver, notes="Saindo agora")

        note = Order.objects.get(id=order.id).status_log.last().note
        assert note == "Em rota com Carlos. Saindo agora"

    def test_no_going_back(self, service, make_order, driver):
        order = make_order()
        assignment, _ = service.claim(_ref(order), driver)
        service.advance(assignment.id, AssignmentStatus.ENTREGUE, driver, recipient_name="Joana")

        with pytest.raises(InvalidAssignmentTransition):
            service.advance(assignment.id, AssignmentStatus.EM_ROTA, driver)

    def test_other_drivers_assignment_hidden(self, service, make_order, driver, other_driver):
        order = make_order()
        assignment, _ = service.claim(_ref(order), driver)

        with pytest.raises(AssignmentNotFound):
            service.advance(assignment.id, AssignmentStatus.EM_ROTA, other_driver)


class TestAdminAssign:
    def test_requires_driver(self, service, make_order, admin_user):
        order = make_order()
        with pytest.raises(DriverNotFound):
            service.assign(order.id, admin_user.pk)

    def test_replaces_pending_holder(self, service, make_order, driver, other_driver):
        order = make_order()
        previous, _ = service.claim(_ref(order), driver)

        assignment = service.assign(order.id, other_driver.pk, actor="admin:gerente")

        assert assignment.source == AssignmentSource.ADMIN
        assert assignment.driver_id == other_driver.pk
        previous.refresh_from_db()
        assert previous.status == AssignmentStatus.LIBERADA

    def test_in_progress_requires_override(self, service, make_order, driver, other_driver):
        order = make_order()
        previous, _ = service.claim(_ref(order), driver)
        service.advance(previous.id, AssignmentStatus.EM_ROTA, driver)

        with pytest.raises(AssignmentInProgress):
            service.assign(order.id, other_driver.pk)

        assignment = service.assign(order.id, other_driver.pk, override=True)
        assert assignment.driver_id == other_driver.pk

    def test_same_driver_is_noop(self, service, make_order, driver):
        order = make_order()
        holder, _ = service.claim(_ref(order), driver)
        assert service.assign(order.id, driver.pk).id == holder.id

    def test_unassign(self, service, make_order, driver):
        order = make_order()
        service.claim(_ref(order), driver)

        with freeze_time("2026-03-10 18:00:00"):
            released = service.unassign(order.id)

        assert released.status == AssignmentStatus.LIBERADA
        released.refresh_from_db()
        assert released.released_at == datetime(2026, 3, 10, 18, 0, tzinfo=dt_timezone.utc)
        assert service.unassign(order.id) is None


class TestQueries:
    def test_list_for_driver(self, service, make_order, driver):
        open_order, done_order = make_order(), make_order()
        service.claim(_ref(open_order), driver)
        done, _ = service.claim(_ref(done_order), driver)
        service.advance(done.id, AssignmentStatus.ENTREGUE, driver, recipient_name="Joana")

        assert [a.order_id for a in service.list_for_driver(driver)] == [open_order.id]
        assert len(service.list_for_driver(driver, include_terminal=True)) == 2

    def test_get_for_driver(self, service, make_order, driver, other_driver):
        assignment, _ = service.claim(_ref(make_order()), driver)
        assert service.get_for_driver(assignment.id, driver).id == assignment.id
        with pytest.raises(AssignmentNotFound):
            service.get_for_driver(assignment.id, other_driver)
