"""
Composition Root

Architectural Intent:
- Dependency injection composition root for the provider
- Single place where the API client, provider registry, state store,
  event bus, telemetry and use cases are wired together
- No adapter instantiation should occur outside this module (except tests)

Design Decisions:
- Uses a simple dataclass container instead of a DI framework
- Factory function creates and wires all dependencies from a StratusConfig
- Telemetry stays disabled unless an endpoint is configured
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Optional

import httpx

from stratus.application.use_cases.apply import ApplyConfiguration
from stratus.application.use_cases.destroy import DestroyResources
from stratus.application.use_cases.import_resource import ImportResource
from stratus.application.use_cases.plan import PlanConfiguration
from stratus.application.use_cases.read_data_source import ReadDataSource
from stratus.application.use_cases.refresh import RefreshState
from stratus.infrastructure.config import StratusConfig
from stratus.infrastructure.event_bus import EventBus
from stratus.infrastructure.http.client import ServiceClient
from stratus.infrastructure.provider import Provider
from stratus.infrastructure.repositories.sqlite_state_repository import SQLiteStateRepository
from stratus.infrastructure.telemetry import OTELExporter, create_exporter


@dataclass
class StratusContainer:
    """DI container holding all wired dependencies."""

    config: StratusConfig
    client: ServiceClient
    provider: Provider
    state_store: SQLiteStateRepository
    event_bus: EventBus
    telemetry: OTELExporter
    plan: PlanConfiguration
    apply: ApplyConfiguration
    destroy: DestroyResources
    import_resource: ImportResource
    refresh: RefreshState
    read_data_source: ReadDataSource

    async def close(self) -> None:
        self.telemetry.flush()
        self.state_store.close()
        await self.client.close()


def create_container(
    config: StratusConfig,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> StratusContainer:
    """Create and wire all dependencies.

    ``transport`` replaces the network transport of the API client.
    """
    telemetry = create_exporter(
        endpoint=config.telemetry.endpoint,
        insecure=config.telemetry.insecure,
    )
    client = ServiceClient(
        region=config.cloud.region,
        project_id=config.cloud.project_id,
        auth_token=config.cloud.auth_token,
        endpoint_template=config.cloud.endpoint_template,
        timeout=config.cloud.request_timeout,
        verify_tls=config.cloud.verify_tls,
        transport=transport,
        telemetry=telemetry,
    )
    provider = Provider(client, polling=config.polling, telemetry=telemetry)
    state_store = SQLiteStateRepository(config.state.path)
    state_store.connect()
    event_bus = EventBus()

    args = (provider, state_store, event_bus, telemetry)
    return StratusContainer(
        config=config,
        client=client,
        provider=provider,
        state_store=state_store,
        event_bus=event_bus,
        telemetry=telemetry,
        plan=PlanConfiguration(*args),
        apply=ApplyConfiguration(*args),
        destroy=DestroyResources(*args),
        import_resource=ImportResource(*args),
        refresh=RefreshState(*args),
        read_data_source=ReadDataSource(provider),
    )
