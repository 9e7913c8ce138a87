"""Event sinks receiving committed state transitions."""

import logging
from typing import Protocol

from .types import Event, EventType

log = logging.getLogger(__name__)


class EventSink(Protocol):
    def emit(self, event: Event) -> None: ...


class EventLog:
    """Sink that keeps every event in commit order."""

    def __init__(self):
        self.events: list[Event] = []

    def emit(self, event: Event) -> None:
        log.debug("%s %s @%d", event.type.value, ",".join(event.addresses), event.timestamp)
        self.events.append(event)

    def of_type(self, event_type: EventType) -> list[Event]:
        return [e for e in self.events if e.type == event_type]

    def clear(self) -> None:
        self.events.clear()
