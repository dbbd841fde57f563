"""Background tasks of the core module."""

from __future__ import annotations

import structlog
from celery import shared_task

from modules.core.models import OutboxEvent
from shared.domain.events import event_from_payload
from shared.infrastructure.bus import event_bus

logger = structlog.get_logger(__name__)

MAX_DISPATCH_ATTEMPTS = 5
DISPATCH_BATCH_SIZE = 100


@shared_task(name="core.dispatch_outbox")
def dispatch_outbox_events(batch_size: int = DISPATCH_BATCH_SIZE) -> dict:
    """Publish pending outbox events to the in-process event bus.

    Failed events are retried on later runs until ``MAX_DISPATCH_ATTEMPTS``.
    """
    pending = OutboxEvent.objects.dispatchable(MAX_DISPATCH_ATTEMPTS)[:batch_size]

    published = failed = 0
    for row in pending:
        log = logger.bind(outbox_id=str(row.id), event_type=row.event_type)
        try:
            event = event_from_payload(row.event_type, row.payload)
            event_bus.publish(event)
        except Exception as exc:  # noqa: BLE001
            row.mark_as_failed(f"{type(exc).__name__}: {exc}")
            log.warning("outbox.dispatch_failed", error=str(exc))
            failed += 1
            continue
        row.mark_as_published()
        published += 1

    logger.info("outbox.dispatch_completed", published=published, failed=failed)
    return {"published": published, "failed": failed}
