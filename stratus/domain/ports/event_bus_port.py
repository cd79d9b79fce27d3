"""Event Bus Port: where use cases publish resource lifecycle events."""

from typing import Awaitable, Callable, Protocol, runtime_checkable

from stratus.domain.events.resource_events import DomainEvent

EventHandler = Callable[[DomainEvent], Awaitable[None]]


@runtime_checkable
class EventBusPort(Protocol):
    async def publish(self, events: list[DomainEvent]) -> None: ...

    def subscribe(self, event_type: type, handler: EventHandler) -> None: ...
