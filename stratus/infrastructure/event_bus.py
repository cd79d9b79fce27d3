"""
Event Bus

In-memory publisher for resource lifecycle events. A handler registered for
a base class (ResourceEvent, say) sees every subclass; handlers run in the
order of the event's MRO, most specific class first. Every published event
is also kept in ``published`` so a run can be summarised afterwards.
"""

import logging
from collections import defaultdict

from stratus.domain.events.resource_events import DomainEvent
from stratus.domain.ports.event_bus_port import EventHandler

logger = logging.getLogger(__name__)


class EventBus:
    def __init__(self) -> None:
        self._handlers: defaultdict[type, list[EventHandler]] = defaultdict(list)
        self.published: list[DomainEvent] = []

    def subscribe(self, event_type: type, handler: EventHandler) -> None:
        self._handlers[event_type].append(handler)

    def handlers_for(self, event: DomainEvent) -> list[EventHandler]:
        return [
            handler
            for cls in type(event).__mro__
            for handler in self._handlers.get(cls, ())
        ]

    async def publish(self, events: list[DomainEvent]) -> None:
        for event in events:
            self.published.append(event)
            handlers = self.handlers_for(event)
            logger.debug(
                "%s for %s (%d handler(s))",
                type(event).__name__,
                event.aggregate_id,
                len(handlers),
            )
            for handler in handlers:
                await handler(event)
