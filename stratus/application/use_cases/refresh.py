"""
Refresh State Use Case

Architectural Intent:
- Re-reads every stored resource from the cloud
- Drops resources that vanished and reports attribute drift
- Reads run in parallel through the DAGOrchestrator; one failing read does
  not stop the others
"""

from __future__ import annotations
import logging
from typing import Any, Optional, TYPE_CHECKING

from stratus.application.dtos.configuration import RefreshResult
from stratus.application.orchestration.dag_orchestrator import (
    DAGOrchestrator,
    OrchestrationError,
    WorkflowStep,
)
from stratus.application.use_cases.resource_operations import ResourceOperations
from stratus.domain.entities.resource_record import ResourceRecord
from stratus.domain.ports.event_bus_port import EventBusPort
from stratus.domain.ports.resource_port import ProviderPort
from stratus.domain.ports.state_store_port import StateStorePort

if TYPE_CHECKING:
    from stratus.infrastructure.telemetry.otel_exporter import OTELExporter

logger = logging.getLogger(__name__)


class RefreshState:
    def __init__(
        self,
        provider: ProviderPort,
        state_store: StateStorePort,
        event_bus: EventBusPort,
        telemetry: Optional["OTELExporter"] = None,
    ):
        self.state_store = state_store
        self.operations = ResourceOperations(provider, state_store, event_bus, telemetry)

    async def execute(self, persist: bool = True) -> tuple[RefreshResult, dict[str, ResourceRecord]]:
        """Refresh all records.

        Returns the result summary and the refreshed records by address.
        With ``persist=False`` nothing is written and no events are published.
        """
        result = RefreshResult()
        records: dict[str, ResourceRecord] = {}

        def refresh_step(record: ResourceRecord):
            async def step(context: dict[str, Any], completed: dict[str, Any]) -> None:
                refreshed, drifted = await self.operations.refresh(record, persist=persist)
                if refreshed is None:
                    result.vanished.append(record.address)
                    return
                records[record.address] = refreshed
                result.refreshed.append(record.address)
                if drifted:
                    result.drifted[record.address] = sorted(drifted)
            return step

        stored = self.state_store.list()
        steps = [WorkflowStep(record.address, refresh_step(record)) for record in stored]
        try:
            await DAGOrchestrator(steps).execute({})
        except OrchestrationError as e:
            if not e.failures:
                raise
            result.failed = {name: str(err) for name, err in e.failures.items()}
            for name in e.failures:
                logger.error("%s: refresh failed: %s", name, e.failures[name])
                # keep the last known attributes
                records[name] = next(r for r in stored if r.address == name)

        result.refreshed.sort()
        result.vanished.sort()
        logger.info(
            "Refreshed %d resource(s), %d vanished, %d drifted",
            len(result.refreshed), len(result.vanished), len(result.drifted),
        )
        return result, records
