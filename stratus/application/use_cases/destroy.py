"""
Destroy Use Case

Architectural Intent:
- Deletes every stored resource in reverse dependency order
- A resource is deleted only after everything depending on it is gone;
  independent deletions run in parallel
"""

from __future__ import annotations
import logging
from typing import Any, Optional, TYPE_CHECKING

from stratus.application.dtos.configuration import ApplyResult, Configuration
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


class DestroyResources:
    def __init__(
        self,
        provider: ProviderPort,
        state_store: StateStorePort,
        event_bus: EventBusPort,
        telemetry: Optional["OTELExporter"] = None,
    ):
        self.state_store = state_store
        self.operations = ResourceOperations(provider, state_store, event_bus, telemetry)

    async def execute(
        self,
        configuration: Optional[Configuration] = None,
        targets: Optional[list[str]] = None,
    ) -> ApplyResult:
        """Delete stored resources; ``targets`` limits it to those addresses
        and everything that depends on them.

        Timeouts declared in ``configuration`` apply to the matching deletes.
        """
        records = {r.address: r for r in self.state_store.list()}
        if targets:
            records = self._with_dependents(records, targets)

        result = ApplyResult()

        def delete_step(record: ResourceRecord):
            async def step(context: dict[str, Any], completed: dict[str, Any]) -> None:
                timeouts = None
                if configuration is not None and record.address in configuration.resources:
                    timeouts = configuration.resources[record.address].timeouts
                await self.operations.delete(record, timeouts)
                result.deleted.append(record.address)
            return step

        steps = [
            WorkflowStep(
                address,
                delete_step(record),
                sorted(a for a, other in records.items() if address in other.depends_on),
            )
            for address, record in records.items()
        ]

        try:
            await DAGOrchestrator(steps).execute({})
        except OrchestrationError as e:
            if not e.failures:
                raise
            result.failed = {name: str(err) for name, err in e.failures.items()}
            result.skipped = sorted(e.skipped)

        result.deleted.sort()
        logger.info("Destroy complete: %d deleted, %d failed", len(result.deleted), len(result.failed))
        return result

    @staticmethod
    def _with_dependents(
        records: dict[str, ResourceRecord], targets: list[str]
    ) -> dict[str, ResourceRecord]:
        selected = {t for t in targets if t in records}
        while True:
            more = {
                a for a, r in records.items()
                if a not in selected and selected.intersection(r.depends_on)
            }
            if not more:
                break
            selected |= more
        return {a: records[a] for a in sorted(selected)}
