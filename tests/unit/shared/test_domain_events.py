"""Unit tests for domain event primitives and the outbox round trip."""

from __future__ import annotations

from uuid import uuid4

import pytest

from modules.core.outbox import serialize_event_payload
from modules.orders.events import OrderCreated, OrderStatusLogged
from shared.domain.events import event_from_payload
from shared.infrastructure.bus import InMemoryEventBus

pytestmark = pytest.mark.unit


def test_event_name_is_class_name():
    event = OrderCreated(
        aggregate_id=uuid4(), code="EJGAAAAAA", total="10.00", payment_method="DINHEIRO"
    )
    assert event.event_name == "OrderCreated"


def test_event_rebuilt_from_outbox_payload():
    event = OrderStatusLogged(
        aggregate_id=uuid4(),
        code="EJGAAAAAA",
        status="SEPARANDO",
        previous_status="RECEBIDO",
        sequence=2,
        note="Separando itens",
        actor="admin:gerente",
    )
    rebuilt = event_from_payload("OrderStatusLogged", serialize_event_payload(event))

    assert rebuilt == event


def test_unknown_event_name_raises():
    with pytest.raises(KeyError):
        event_from_payload("NoSuchEvent", {})


class TestInMemoryEventBus:
    def test_publishes_to_subscribers_of_the_event_type(self):
        bus = InMemoryEventBus()
        received = []

        class Recorder:
            def handle(self, event):
                received.append(event)

        recorder = Recorder()
        bus.subscribe(OrderCreated, recorder)
        bus.subscribe(OrderCreated, recorder)

        event = OrderCreated(
            aggregate_id=uuid4(), code="EJGAAAAAA", total="1.00", payment_method="PIX"
        )
        bus.publish(event)
        bus.publish(
            OrderStatusLogged(
                aggregate_id=uuid4(),
                code="EJGAAAAAA",
                status="RECEBIDO",
                previous_status="",
                sequence=1,
            )
        )

        assert received == [event]

    def test_unsubscribe(self):
        bus = InMemoryEventBus()

        class Recorder:
            def handle(self, event):
                raise AssertionError("should not be called")

        recorder = Recorder()
        bus.subscribe(OrderCreated, recorder)
        bus.unsubscribe(OrderCreated, recorder)

        bus.publish(
            OrderCreated(
                aggregate_id=uuid4(), code="EJGAAAAAA", total="1.00", payment_method="PIX"
            )
        )
        assert bus.handlers_for(OrderCreated) == []
