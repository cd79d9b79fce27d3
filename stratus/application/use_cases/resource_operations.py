"""
Resource Operations

Architectural Intent:
- The single place where an adapter call turns into persisted state
- Every use case (apply, destroy, import, refresh) goes through it, so state
  writes, lifecycle events, operation history and telemetry stay consistent

Design Decisions:
- State is written right after each successful operation, never batched
- A create that fails after the cloud object got an id still records the
  object, so the next run can see (and clean up) what was left behind
"""

from __future__ import annotations
import asyncio
import logging
from typing import Any, Awaitable, Callable, Mapping, Optional, Sequence, TYPE_CHECKING

from stratus.domain.entities.resource_record import ResourceRecord
from stratus.domain.errors import ProviderError, ValidationError
from stratus.domain.events.resource_events import (
    ResourceCreatedEvent,
    ResourceDeletedEvent,
    ResourceDriftedEvent,
    ResourceFailedEvent,
    ResourceUpdatedEvent,
    ResourceVanishedEvent,
)
from stratus.domain.ports.event_bus_port import EventBusPort
from stratus.domain.ports.resource_port import ProviderPort, ResourcePort
from stratus.domain.ports.state_store_port import StateStorePort
from stratus.domain.value_objects.resource_data import ResourceData
from stratus.domain.value_objects.timeouts import ResourceTimeouts

if TYPE_CHECKING:
    from stratus.infrastructure.telemetry.otel_exporter import OTELExporter

logger = logging.getLogger(__name__)


def resolve_timeouts(
    resource: ResourcePort, overrides: Optional[Mapping[str, Any]]
) -> ResourceTimeouts:
    try:
        return resource.default_timeouts.with_overrides(dict(overrides or {}))
    except ValueError as e:
        raise ValidationError(f"{resource.type_name}: invalid timeouts: {e}") from e


class ResourceOperations:
    def __init__(
        self,
        provider: ProviderPort,
        state_store: StateStorePort,
        event_bus: EventBusPort,
        telemetry: Optional["OTELExporter"] = None,
    ):
        self.provider = provider
        self.state_store = state_store
        self.event_bus = event_bus
        self.telemetry = telemetry

    def build_data(
        self,
        resource: ResourcePort,
        config: Optional[Mapping[str, Any]] = None,
        record: Optional[ResourceRecord] = None,
        timeouts: Optional[Mapping[str, Any]] = None,
    ) -> ResourceData:
        return ResourceData(
            resource.type_name,
            resource.schema,
            config=config,
            state=record.attributes if record else None,
            resource_id=record.id if record else "",
            timeouts=resolve_timeouts(resource, timeouts),
        )

    async def _run(
        self,
        address: str,
        resource_type: str,
        operation: str,
        call: Callable[[], Awaitable[Any]],
    ) -> Any:
        loop = asyncio.get_running_loop()
        started = loop.time()
        span = None
        if self.telemetry is not None:
            span = self.telemetry.start_span(
                f"stratus.{operation}",
                attributes={"address": address, "resource_type": resource_type},
            )
        fields = {"address": address, "resource_type": resource_type, "operation": operation}
        logger.info("%s: %s started", address, operation, extra=fields)
        try:
            result = await call()
        except Exception as e:
            duration = loop.time() - started
            logger.error(
                "%s: %s failed after %.1fs: %s", address, operation, duration, e, extra=fields
            )
            self.state_store.record_operation(address, operation, "failed", duration, str(e))
            if self.telemetry is not None:
                self.telemetry.record_operation(resource_type, operation, False, duration)
                self.telemetry.end_span(span, e)
            await self.event_bus.publish([
                ResourceFailedEvent(
                    aggregate_id=address,
                    resource_type=resource_type,
                    operation=operation,
                    error=str(e),
                )
            ])
            raise
        duration = loop.time() - started
        logger.info("%s: %s complete after %.1fs", address, operation, duration, extra=fields)
        self.state_store.record_operation(address, operation, "success", duration)
        if self.telemetry is not None:
            self.telemetry.record_operation(resource_type, operation, True, duration)
            self.telemetry.end_span(span)
        return result

    def _save(
        self, address: str, d: ResourceData, depends_on: Sequence[str]
    ) -> ResourceRecord:
        record = ResourceRecord(
            address=address,
            type=d.type_name,
            id=d.id,
            attributes=d.to_state(),
            depends_on=list(depends_on),
        )
        self.state_store.put(record)
        return record

    async def create(
        self,
        address: str,
        type_name: str,
        config: Mapping[str, Any],
        depends_on: Sequence[str] = (),
        timeouts: Optional[Mapping[str, Any]] = None,
    ) -> ResourceRecord:
        resource = self.provider.resource(type_name)
        d = self.build_data(resource, config, timeouts=timeouts)
        resource.validate(d)

        try:
            await self._run(address, type_name, "create", lambda: resource.create(d))
        except Exception:
            if d.id:
                logger.warning("%s: keeping partially created %s in state", address, d.id)
                self._save(address, d, depends_on)
            raise
        if not d.id:
            raise ProviderError(f"{address}: resource vanished right after creation")

        record = self._save(address, d, depends_on)
        await self.event_bus.publish([
            ResourceCreatedEvent(aggregate_id=address, resource_type=type_name, resource_id=d.id)
        ])
        return record

    async def update(
        self,
        record: ResourceRecord,
        config: Mapping[str, Any],
        changed: Sequence[str] = (),
        depends_on: Sequence[str] = (),
        timeouts: Optional[Mapping[str, Any]] = None,
    ) -> ResourceRecord:
        resource = self.provider.resource(record.type)
        d = self.build_data(resource, config, record, timeouts)
        resource.validate(d)

        await self._run(record.address, record.type, "update", lambda: resource.update(d))
        if not d.id:
            self.state_store.remove(record.address)
            raise ProviderError(f"{record.address}: resource vanished during update")

        updated = self._save(record.address, d, depends_on)
        await self.event_bus.publish([
            ResourceUpdatedEvent(
                aggregate_id=record.address,
                resource_type=record.type,
                resource_id=d.id,
                changed=tuple(changed),
            )
        ])
        return updated

    async def delete(
        self,
        record: ResourceRecord,
        timeouts: Optional[Mapping[str, Any]] = None,
    ) -> None:
        resource = self.provider.resource(record.type)
        d = self.build_data(resource, None, record, timeouts)
        await self._run(record.address, record.type, "delete", lambda: resource.delete(d))
        self.state_store.remove(record.address)
        await self.event_bus.publish([
            ResourceDeletedEvent(
                aggregate_id=record.address, resource_type=record.type, resource_id=record.id
            )
        ])

    async def replace(
        self,
        record: ResourceRecord,
        type_name: str,
        config: Mapping[str, Any],
        changed: Sequence[str] = (),
        depends_on: Sequence[str] = (),
        timeouts: Optional[Mapping[str, Any]] = None,
    ) -> ResourceRecord:
        """Destroy the stored object, then create it again from ``config``."""
        await self.delete(record, timeouts if record.type == type_name else None)
        created = await self.create(record.address, type_name, config, depends_on, timeouts)
        await self.event_bus.publish([
            ResourceUpdatedEvent(
                aggregate_id=record.address,
                resource_type=type_name,
                resource_id=created.id,
                changed=tuple(changed),
                replaced=True,
            )
        ])
        return created

    async def refresh(
        self, record: ResourceRecord, persist: bool = True
    ) -> tuple[Optional[ResourceRecord], dict[str, Any]]:
        """Re-read one resource.

        Returns the refreshed record (None when the object is gone) and the
        attributes that drifted from the stored values.
        """
        resource = self.provider.resource(record.type)
        d = self.build_data(resource, None, record)
        await resource.read(d)

        if not d.id:
            logger.warning("%s: %s no longer exists", record.address, record.id)
            if persist:
                self.state_store.remove(record.address)
                await self.event_bus.publish([
                    ResourceVanishedEvent(
                        aggregate_id=record.address,
                        resource_type=record.type,
                        resource_id=record.id,
                    )
                ])
            return None, {}

        attributes = d.to_state()
        drifted = {
            key: {"before": record.attributes.get(key), "after": value}
            for key, value in attributes.items()
            if record.attributes.get(key) != value
        }
        refreshed = ResourceRecord(
            address=record.address,
            type=record.type,
            id=d.id,
            attributes=attributes,
            depends_on=list(record.depends_on),
        )
        if persist:
            self.state_store.put(refreshed)
            if drifted:
                logger.info("%s: drift in %s", record.address, ", ".join(sorted(drifted)))
                await self.event_bus.publish([
                    ResourceDriftedEvent(
                        aggregate_id=record.address,
                        resource_type=record.type,
                        resource_id=d.id,
                        drifted=drifted,
                    )
                ])
        return refreshed, drifted
