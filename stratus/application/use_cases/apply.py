"""
Apply Configuration Use Case

Architectural Intent:
- Converges the cloud onto the declared configuration
- Refreshes state, then creates, updates, replaces and deletes resources in
  dependency order; independent resources run in parallel through the
  DAGOrchestrator
- Resources no longer declared are deleted after the declared resources that
  used to depend on them were converged

Design Decisions:
- Each resource decides its action when its step runs, with references
  resolved against the attributes its dependencies just produced
- A failed resource skips its dependents; other branches keep going and all
  failures end up in the ApplyResult
"""

from __future__ import annotations
import logging
from typing import Any, Optional, TYPE_CHECKING

from stratus.application.dtos.configuration import (
    ApplyResult,
    Configuration,
    DataDeclaration,
    ResourceDeclaration,
)
from stratus.application.interpolation import contains_unknown, resolve
from stratus.application.orchestration.dag_orchestrator import (
    DAGOrchestrator,
    OrchestrationError,
    WorkflowStep,
)
from stratus.application.use_cases.plan import read_data_source
from stratus.application.use_cases.refresh import RefreshState
from stratus.application.use_cases.resource_operations import ResourceOperations
from stratus.domain.entities.resource_record import ResourceRecord
from stratus.domain.errors import ValidationError
from stratus.domain.ports.event_bus_port import EventBusPort
from stratus.domain.ports.resource_port import ProviderPort
from stratus.domain.ports.state_store_port import StateStorePort
from stratus.domain.services.reconciler import PlanAction, plan_change

if TYPE_CHECKING:
    from stratus.infrastructure.telemetry.otel_exporter import OTELExporter

logger = logging.getLogger(__name__)

DELETE_PREFIX = "delete:"


class ApplyConfiguration:
    def __init__(
        self,
        provider: ProviderPort,
        state_store: StateStorePort,
        event_bus: EventBusPort,
        telemetry: Optional["OTELExporter"] = None,
    ):
        self.provider = provider
        self.state_store = state_store
        self.refresher = RefreshState(provider, state_store, event_bus, telemetry)
        self.operations = ResourceOperations(provider, state_store, event_bus, telemetry)

    async def execute(self, configuration: Configuration, refresh: bool = True) -> ApplyResult:
        if refresh:
            _, records = await self.refresher.execute()
        else:
            records = {r.address: r for r in self.state_store.list()}

        known = configuration.known()
        deps = configuration.dependency_map()
        values: dict[str, dict[str, Any]] = {
            address: record.attributes for address, record in records.items()
        }
        result = ApplyResult()

        def resource_step(decl: ResourceDeclaration):
            async def step(context: dict[str, Any], completed: dict[str, Any]) -> ResourceRecord:
                config = resolve(decl.attributes, values, known)
                if contains_unknown(config):
                    raise ValidationError(
                        f"{decl.address}: references attributes that are still unknown"
                    )
                record = await self._converge(
                    decl, config, records.get(decl.address), deps[decl.address], result
                )
                values[decl.address] = record.attributes
                return record
            return step

        def data_step(decl: DataDeclaration):
            async def step(context: dict[str, Any], completed: dict[str, Any]) -> dict[str, Any]:
                attributes = resolve(decl.attributes, values, known)
                if contains_unknown(attributes):
                    raise ValidationError(
                        f"{decl.key}: references attributes that are still unknown"
                    )
                values[decl.key] = await read_data_source(self.provider, decl, attributes)
                return values[decl.key]
            return step

        def delete_step(record: ResourceRecord):
            async def step(context: dict[str, Any], completed: dict[str, Any]) -> None:
                await self.operations.delete(record)
                result.deleted.append(record.address)
            return step

        steps = [
            WorkflowStep(address, resource_step(decl), deps[address])
            for address, decl in configuration.resources.items()
        ] + [
            WorkflowStep(decl.key, data_step(decl), deps[decl.key])
            for decl in configuration.data.values()
        ]

        orphans = {a: r for a, r in records.items() if a not in configuration.resources}
        for address, record in orphans.items():
            # dependents go first: other orphans, and declared resources
            # whose stored record still points at this one
            before = [
                DELETE_PREFIX + other.address
                for other in orphans.values()
                if address in other.depends_on
            ] + [
                other.address
                for other in records.values()
                if other.address in configuration.resources and address in other.depends_on
            ]
            steps.append(WorkflowStep(DELETE_PREFIX + address, delete_step(record), sorted(before)))

        try:
            await DAGOrchestrator(steps).execute({})
        except OrchestrationError as e:
            if not e.failures:
                raise
            result.failed = {
                name.removeprefix(DELETE_PREFIX): str(err) for name, err in e.failures.items()
            }
            result.skipped = sorted(name.removeprefix(DELETE_PREFIX) for name in e.skipped)

        logger.info("Apply complete: %s", result.summary())
        return result

    async def _converge(
        self,
        decl: ResourceDeclaration,
        config: dict[str, Any],
        record: Optional[ResourceRecord],
        depends_on: list[str],
        result: ApplyResult,
    ) -> ResourceRecord:
        resource = self.provider.resource(decl.type)
        timeouts = decl.timeouts

        if record is None:
            created = await self.operations.create(
                decl.address, decl.type, config, depends_on, timeouts
            )
            result.created.append(decl.address)
            return created

        if record.type != decl.type:
            replaced = await self.operations.replace(
                record, decl.type, config, ("type",), depends_on, timeouts
            )
            result.replaced.append(decl.address)
            return replaced

        change = plan_change(
            resource.schema,
            config,
            record.attributes,
            updatable=resource.updatable,
            address=decl.address,
            type_name=decl.type,
        )
        if change.action == PlanAction.NO_OP:
            result.unchanged.append(decl.address)
            if list(record.depends_on) != depends_on:
                record = ResourceRecord(
                    address=record.address,
                    type=record.type,
                    id=record.id,
                    attributes=record.attributes,
                    depends_on=depends_on,
                )
                self.state_store.put(record)
            return record

        if change.action == PlanAction.REPLACE:
            logger.info(
                "%s: replacing, %s cannot be changed in place",
                decl.address, ", ".join(change.force_new or change.changed),
            )
            replaced = await self.operations.replace(
                record, decl.type, config, change.changed, depends_on, timeouts
            )
            result.replaced.append(decl.address)
            return replaced

        updated = await self.operations.update(
            record, config, change.changed, depends_on, timeouts
        )
        result.updated.append(decl.address)
        return updated
