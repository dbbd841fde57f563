"""Order status transitions shared by admin, payment and delivery flows.

Every transition is a conditional update keyed on the status the caller
read (``UPDATE ... WHERE id = ? AND status = ?``) so two actors can never
both move the same order from the same state.
"""

from __future__ import annotations

import structlog
from django.utils import timezone

from modules.notifications.sink import StatusNotificationSink
from modules.orders.exceptions import InvalidOrderStatus, StaleOrderStatus
from modules.orders.models import Order, OrderStatusLog

logger = structlog.get_logger(__name__)


def transition_order(
    order: Order,
    new_status: str,
    note: str = "",
    actor: str = "system",
    sink: StatusNotificationSink | None = None,
) -> OrderStatusLog:
    """Move *order* to *new_status* and append the status log entry.

    *order* is updated in place.

    Raises:
        InvalidOrderStatus: the state machine does not allow the move.
        StaleOrderStatus: the persisted status is no longer the one read.
    """
    old_status = order.status
    log = logger.bind(
        order_id=str(order.id),
        code=order.code,
        current_status=old_status,
        new_status=new_status,
    )

    if not order.can_transition_to(new_status):
        log.warning("order.invalid_transition")
        raise InvalidOrderStatus(
            f"Não é possível mudar o pedido de {old_status} para {new_status}."
        )

    now = timezone.now()
    updated = Order.objects.filter(id=order.id, status=old_status).update(
        status=new_status, updated_at=now
    )
    if updated == 0:
        log.warning("order.transition_conflict")
        raise StaleOrderStatus()

    order.status = new_status
    order.updated_at = now
    entry = (sink or StatusNotificationSink()).record(
        order, new_status, note=note, actor=actor, previous_status=old_status
    )
    log.info("order.status_updated", actor=actor)
    return entry
