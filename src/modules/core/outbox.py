"""Staging of domain events into the transactional outbox."""

from __future__ import annotations

import json
from dataclasses import asdict
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, List
from uuid import UUID

import structlog
from django.db import transaction

from modules.core.models import OutboxEvent
from shared.domain.events import DomainEvent

logger = structlog.get_logger(__name__)


def stage_events(events: Iterable[DomainEvent]) -> List[OutboxEvent]:
    """Persist *events* in the caller's transaction.

    Dispatch is scheduled with ``transaction.on_commit`` so that nothing
    is published for a transaction that rolls back.
    """
    rows = [
        OutboxEvent.objects.create(
            event_type=event.event_name,
            aggregate_id=str(event.aggregate_id),
            payload=serialize_event_payload(event),
            topic=event.topic,
        )
        for event in events
    ]
    if rows:
        transaction.on_commit(_schedule_dispatch)
        logger.info(
            "outbox.events_staged",
            event_types=[row.event_type for row in rows],
            count=len(rows),
        )
    return rows


def _schedule_dispatch() -> None:
    from modules.core.tasks import dispatch_outbox_events

    dispatch_outbox_events.delay()


def serialize_event_payload(event: DomainEvent) -> Dict[str, Any]:
    data = asdict(event)
    normalized = _normalize_for_json(data)
    return json.loads(json.dumps(normalized))


def _normalize_for_json(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (list, tuple)):
        return [_normalize_for_json(item) for item in value]
    if isinstance(value, dict):
        return {key: _normalize_for_json(val) for key, val in value.items()}
    return value
