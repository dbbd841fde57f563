"""Unit tests for the order status state machine.

Covers:
- Forward-only transitions, skipping ahead allowed.
- Terminal states accept nothing.
- Each transition appends exactly one status log entry.
- Conditional update: a stale in-memory status is refused.
"""

from __future__ import annotations

import pytest

from modules.core.models import OutboxEvent
from modules.orders.constants import (
    TERMINAL_STATES,
    VALID_TRANSITIONS,
    OrderStatus,
)
from modules.orders.exceptions import InvalidOrderStatus, StaleOrderStatus
from modules.orders.models import Order, OrderStatusLog
from modules.orders.state_machine import transition_order

pytestmark = pytest.mark.unit


class TestTransitionTable:
    def test_no_backward_moves(self):
        order_of = list(OrderStatus)
        for source, targets in VALID_TRANSITIONS.items():
            for target in targets:
                if target == OrderStatus.CANCELADO:
                    continue
                assert order_of.index(target) > order_of.index(source)

    def test_terminal_states_have_no_exits(self):
        for terminal in TERMINAL_STATES:
            assert VALID_TRANSITIONS[terminal] == set()

    def test_cancel_reachable_from_every_open_state(self):
        for source, targets in VALID_TRANSITIONS.items():
            if source not in TERMINAL_STATES:
                assert OrderStatus.CANCELADO in targets


class TestTransitionOrder:
    def test_appends_log_entry(self, make_order):
        order = make_order()

        entry = transition_order(order, OrderStatus.SEPARANDO, note="Separando", actor="admin:gerente")

        assert entry.sequence == 2
        assert entry.status == OrderStatus.SEPARANDO
        assert entry.actor == "admin:gerente"
        order.refresh_from_db()
        assert order.status == OrderStatus.SEPARANDO
        assert list(order.status_log.values_list("status", flat=True)) == [
            OrderStatus.RECEBIDO,
            OrderStatus.SEPARANDO,
        ]

    def test_skip_ahead_allowed(self, make_order):
        order = make_order()
        transition_order(order, OrderStatus.SAIU_PARA_ENTREGA)
        assert order.status == OrderStatus.SAIU_PARA_ENTREGA

    def test_backward_refused_without_log(self, make_order):
        order = make_order(status=OrderStatus.SAIU_PARA_ENTREGA)
        before = OrderStatusLog.objects.filter(order=order).count()

        with pytest.raises(InvalidOrderStatus):
            transition_order(order, OrderStatus.SEPARANDO)

        assert OrderStatusLog.objects.filter(order=order).count() == before

    @pytest.mark.parametrize("terminal", [OrderStatus.ENTREGUE, OrderStatus.CANCELADO])
    def test_terminal_refuses_everything(self, make_order, terminal):
        order = make_order(status=terminal)
        with pytest.raises(InvalidOrderStatus):
            transition_order(order, OrderStatus.CANCELADO)

    def test_stale_status_refused(self, make_order):
        order = make_order()
        Order.objects.filter(id=order.id).update(status=OrderStatus.SEPARANDO)

        # ``order`` still believes it is RECEBIDO.
        with pytest.raises(StaleOrderStatus):
            transition_order(order, OrderStatus.SAIU_PARA_ENTREGA)

        assert Order.objects.get(id=order.id).status == OrderStatus.SEPARANDO

    def test_stages_status_logged_event(self, make_order):
        order = make_order()
        transition_order(order, OrderStatus.SEPARANDO)

        payloads = [
            row.payload
            for row in OutboxEvent.objects.filter(event_type="OrderStatusLogged")
        ]
        (payload,) = [p for p in payloads if p["sequence"] == 2]
        assert payload["status"] == OrderStatus.SEPARANDO
        assert payload["previous_status"] == OrderStatus.RECEBIDO
