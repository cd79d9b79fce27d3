"""
Resource Lifecycle Events

Every event is keyed by the resource address from the configuration file
(e.g. ``networking_port_v2.web``), carried as ``aggregate_id``. Events are
frozen and published once the operation they describe has finished.
"""

from dataclasses import dataclass, field
from datetime import datetime, UTC
from typing import Any


def _now() -> str:
    return datetime.now(UTC).isoformat()


@dataclass(frozen=True)
class DomainEvent:
    occurred_at: str = field(default_factory=_now, init=False, repr=False)
    aggregate_id: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "event_type": type(self).__name__,
            "aggregate_id": self.aggregate_id,
            "occurred_at": self.occurred_at,
        }


@dataclass(frozen=True)
class ResourceEvent(DomainEvent):
    resource_type: str = ""
    resource_id: str = ""

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data.update(resource_type=self.resource_type, resource_id=self.resource_id)
        return data


@dataclass(frozen=True)
class ResourceCreatedEvent(ResourceEvent):
    pass


@dataclass(frozen=True)
class ResourceUpdatedEvent(ResourceEvent):
    changed: tuple[str, ...] = ()
    replaced: bool = False


@dataclass(frozen=True)
class ResourceDeletedEvent(ResourceEvent):
    pass


@dataclass(frozen=True)
class ResourceDriftedEvent(ResourceEvent):
    drifted: dict[str, Any] = field(default_factory=dict, hash=False)

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["drifted"] = sorted(self.drifted)
        return data


@dataclass(frozen=True)
class ResourceVanishedEvent(ResourceEvent):
    """The stored resource no longer exists in the cloud."""


@dataclass(frozen=True)
class ResourceFailedEvent(ResourceEvent):
    operation: str = ""
    error: str = ""
