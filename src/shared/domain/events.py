"""Domain events primitives for the fulfillment core.

Events are immutable dataclasses.  Concrete events declare their own
fields as keyword-only so they can follow the defaulted base fields.
Every subclass is registered by name so that events persisted in the
outbox can be rebuilt before being handed to the event bus.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from typing import Any, ClassVar, Dict, Type
from uuid import UUID, uuid4

_EVENT_TYPES: Dict[str, Type["DomainEvent"]] = {}


@dataclass(frozen=True)
class DomainEvent:
    """Base domain event (immutable)."""

    aggregate_id: UUID
    event_id: UUID = field(default_factory=uuid4)
    occurred_on: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    event_name: str = field(init=False)

    topic: ClassVar[str] = "default"

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        _EVENT_TYPES[cls.__name__] = cls

    def __post_init__(self) -> None:
        object.__setattr__(self, "event_name", self.__class__.__name__)


def event_from_payload(event_name: str, payload: Dict[str, Any]) -> DomainEvent:
    """Rebuild a registered event from its JSON outbox payload.

    Raises:
        KeyError: no event class is registered under *event_name*.
    """
    event_cls = _EVENT_TYPES[event_name]
    init_names = {f.name for f in fields(event_cls) if f.init}
    kwargs = {key: value for key, value in payload.items() if key in init_names}
    if "aggregate_id" in kwargs and not isinstance(kwargs["aggregate_id"], UUID):
        kwargs["aggregate_id"] = UUID(str(kwargs["aggregate_id"]))
    if "event_id" in kwargs and not isinstance(kwargs["event_id"], UUID):
        kwargs["event_id"] = UUID(str(kwargs["event_id"]))
    if isinstance(kwargs.get("occurred_on"), str):
        kwargs["occurred_on"] = datetime.fromisoformat(kwargs["occurred_on"])
    return event_cls(**kwargs)
