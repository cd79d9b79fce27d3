"""
Domain Events Package

Architectural Intent:
- Contains domain events for the resource lifecycle
- Events are the primary mechanism for cross-boundary communication
"""

from stratus.domain.events.resource_events import DomainEvent
from stratus.domain.events.resource_events import (
    ResourceEvent,
    ResourceCreatedEvent,
    ResourceUpdatedEvent,
    ResourceDeletedEvent,
    ResourceDriftedEvent,
    ResourceVanishedEvent,
    ResourceFailedEvent,
)

__all__ = [
    "DomainEvent",
    "ResourceEvent",
    "ResourceCreatedEvent",
    "ResourceUpdatedEvent",
    "ResourceDeletedEvent",
    "ResourceDriftedEvent",
    "ResourceVanishedEvent",
    "ResourceFailedEvent",
]
