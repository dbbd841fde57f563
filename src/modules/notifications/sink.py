"""Status Notification Sink.

Appends entries to an order's status log and stages an
``OrderStatusLogged`` event in the same transaction.  Subscribers
(e-mail, audit log) receive it from the outbox once the transaction
commits; the tracking page simply re-reads the log.
"""

from __future__ import annotations

from typing import Optional

import structlog
from django.db.models import Max

from modules.core.outbox import stage_events
from modules.orders.events import OrderStatusLogged
from modules.orders.models import Order, OrderStatusLog

logger = structlog.get_logger(__name__)


class StatusNotificationSink:
    """Single writer of ``OrderStatusLog``.

    Callers must hold the order row lock (``select_for_update``) so the
    next ``sequence`` cannot be taken by a concurrent writer; the unique
    (order, sequence) constraint backs this up.
    """

    def record(
        self,
        order: Order,
        status: str,
        note: str = "",
        actor: str = "system",
        previous_status: Optional[str] = None,
    ) -> OrderStatusLog:
        last = OrderStatusLog.objects.filter(order_id=order.id).aggregate(
            last=Max("sequence")
        )["last"]
        entry = OrderStatusLog.objects.create(
            order_id=order.id,
            sequence=(last or 0) + 1,
            status=status,
            note=note or "",
            actor=actor or "",
        )
        stage_events(
            [
                OrderStatusLogged(
                    aggregate_id=order.id,
                    code=order.code,
                    status=status,
                    previous_status=previous_status or "",
                    sequence=entry.sequence,
                    note=entry.note,
                    actor=entry.actor,
                )
            ]
        )
        logger.info(
            "order.status_logged",
            order_id=str(order.id),
            code=order.code,
            status=status,
            sequence=entry.sequence,
            actor=entry.actor,
        )
        return entry
