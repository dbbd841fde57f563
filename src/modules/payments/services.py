"""Payment Reconciler.

Brings ``Order.payment_status`` in line with the gateway, which may
deliver the same notification many times and in any order.  Each
gateway event goes through one transaction with the order row locked:

1. unknown correlation id → acknowledged and ignored;
2. revision already in the ledger → duplicate, dropped;
3. revision not newer than ``order.payment_revision`` → stale, dropped;
4. mapped status equal to the current one → revision advanced only;
5. transition refused by the payment table (``FALHOU`` after ``PAGO``)
   → regression, recorded and dropped;
6. otherwise applied: status log entry, ``PaymentStatusChanged`` event
   and, for ``FALHOU`` on an order still in the store, cancellation.

Replays never reach the gateway as errors.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Optional

import structlog
from django.db import IntegrityError, transaction

from modules.core.outbox import stage_events
from modules.notifications.sink import StatusNotificationSink
from modules.orders.constants import (
    AUTO_CANCEL_ON_PAYMENT_FAILURE,
    PAYMENT_LOG_NOTES,
    PAYMENT_TRANSITIONS,
    OrderStatus,
    PaymentStatus,
)
from modules.orders.state_machine import transition_order
from modules.payments.constants import ReconciliationOutcome, map_gateway_status
from modules.payments.events import PaymentStatusChanged
from modules.payments.exceptions import PaymentRegression, ReplayedPaymentEvent

if TYPE_CHECKING:
    from modules.orders.models import Order
    from modules.orders.repositories.interfaces import IOrderRepository
    from modules.payments.dtos import GatewayEventDTO
    from modules.payments.repositories.interfaces import IPaymentEventRepository

logger = structlog.get_logger(__name__)

GATEWAY_ACTOR = "gateway"


@dataclass(frozen=True)
class ReconciliationResult:
    outcome: str
    order_id: Optional[str] = None
    payment_status: Optional[str] = None


class PaymentReconciler:
    def __init__(
        self,
        order_repository: IOrderRepository,
        event_repository: IPaymentEventRepository,
        sink: Optional[StatusNotificationSink] = None,
        assignment_releaser: Optional[Callable[[Order, str], object]] = None,
    ) -> None:
        self._orders = order_repository
        self._events = event_repository
        self._sink = sink or StatusNotificationSink()
        self._release_assignment = assignment_releaser

    @transaction.atomic
    def apply(self, event: GatewayEventDTO) -> ReconciliationResult:
        log = logger.bind(
            correlation_id=event.correlation_id,
            revision=event.revision,
            gateway_status=event.status,
        )
        order = self._orders.get_by_correlation_id_for_update(event.correlation_id)
        if order is None:
            log.warning("payment.webhook_unknown_order")
            return ReconciliationResult(ReconciliationOutcome.UNKNOWN_ORDER)

        log = log.bind(order_id=str(order.id), code=order.code)
        mapped = map_gateway_status(event.status)
        current = order.payment_status

        try:
            self._guard_replay(order, event)
        except ReplayedPaymentEvent as exc:
            log.info("payment.webhook_replay_ignored", reason=exc.outcome)
            return ReconciliationResult(exc.outcome, str(order.id), current)

        regression: Optional[PaymentRegression] = None
        try:
            outcome = _classify(current, mapped)
        except PaymentRegression as exc:
            outcome = ReconciliationOutcome.REGRESSION
            regression = exc

        try:
            self._events.record(
                {
                    "order": order,
                    "correlation_id": event.correlation_id,
                    "revision": event.revision,
                    "gateway_status": event.status,
                    "mapped_status": mapped,
                    "previous_status": current,
                    "outcome": outcome,
                    "external_payment_id": event.payment_id or "",
                    "payload": event.model_dump(by_alias=True),
                }
            )
        except IntegrityError:
            log.info("payment.webhook_replay_ignored", reason="duplicate")
            return ReconciliationResult(
                ReconciliationOutcome.DUPLICATE, str(order.id), current
            )

        if regression is not None:
            log.warning("payment.regression_rejected", detail=regression.message)
            return ReconciliationResult(outcome, str(order.id), current)

        order.payment_revision = event.revision
        fields = ["payment_revision"]
        if outcome == ReconciliationOutcome.UNCHANGED:
            self._orders.update_fields(order, fields)
            log.info("payment.revision_advanced", payment_status=current)
            return ReconciliationResult(outcome, str(order.id), current)

        order.payment_status = mapped
        fields.append("payment_status")
        if event.payment_id:
            order.payment_external_id = event.payment_id
            fields.append("payment_external_id")
        if event.payment_type:
            order.payment_method_detail = event.payment_type
            fields.append("payment_method_detail")
        self._orders.update_fields(order, fields)

        self._sink.record(
            order,
            order.status,
            note=PAYMENT_LOG_NOTES[mapped],
            actor=GATEWAY_ACTOR,
            previous_status=order.status,
        )
        stage_events(
            [
                PaymentStatusChanged(
                    aggregate_id=order.id,
                    code=order.code,
                    old_status=current,
                    new_status=mapped,
                    revision=event.revision,
                    correlation_id=event.correlation_id,
                )
            ]
        )
        log.info("payment.status_applied", old_status=current, new_status=mapped)

        if (
            mapped == PaymentStatus.FALHOU
            and order.status in AUTO_CANCEL_ON_PAYMENT_FAILURE
        ):
            self._cancel_for_failed_payment(order, log)
        return ReconciliationResult(outcome, str(order.id), mapped)

    def _guard_replay(self, order: Order, event: GatewayEventDTO) -> None:
        if self._events.exists(event.correlation_id, event.revision):
            raise ReplayedPaymentEvent(ReconciliationOutcome.DUPLICATE)
        applied = order.payment_revision
        if applied is not None and event.revision <= applied:
            raise ReplayedPaymentEvent(ReconciliationOutcome.STALE)

    def _cancel_for_failed_payment(self, order: Order, log) -> None:
        transition_order(
            order,
            OrderStatus.CANCELADO,
            note="Pedido cancelado: pagamento recusado",
            actor=GATEWAY_ACTOR,
            sink=self._sink,
        )
        if self._release_assignment is not None:
            self._release_assignment(order, GATEWAY_ACTOR)
        log.info("payment.order_cancelled_on_failure")


def _classify(current: str, mapped: str) -> str:
    if mapped == current:
        return ReconciliationOutcome.UNCHANGED
    if mapped not in PAYMENT_TRANSITIONS.get(current, set()):
        raise PaymentRegression(f"Payment status {mapped} after {current} rejected.")
    return ReconciliationOutcome.APPLIED


def build_payment_reconciler() -> PaymentReconciler:
    from modules.deliveries.services import release_active_assignment
    from modules.orders.repositories.django_repository import OrderDjangoRepository
    from modules.payments.repositories.django_repository import (
        PaymentEventDjangoRepository,
    )

    return PaymentReconciler(
        order_repository=OrderDjangoRepository(),
        event_repository=PaymentEventDjangoRepository(),
        assignment_releaser=release_active_assignment,
    )
