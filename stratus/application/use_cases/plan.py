"""
Plan Use Case

Architectural Intent:
- Computes what apply would do, without changing anything
- Stored resources are refreshed in memory only; data sources are read so
  their values can feed references
- Declarations are evaluated in dependency order through the
  DAGOrchestrator, so a reference to a resource that is about to be created
  shows up as "(known after apply)"
"""

from __future__ import annotations
import logging
from typing import Any, Optional, TYPE_CHECKING

from stratus.application.dtos.configuration import (
    Configuration,
    DataDeclaration,
    PlanResult,
    ResourceDeclaration,
)
from stratus.application.interpolation import contains_unknown, resolve
from stratus.application.orchestration.dag_orchestrator import (
    DAGOrchestrator,
    OrchestrationError,
    WorkflowStep,
)
from stratus.application.use_cases.refresh import RefreshState
from stratus.domain.entities.resource_record import ResourceRecord
from stratus.domain.ports.event_bus_port import EventBusPort
from stratus.domain.ports.resource_port import ProviderPort
from stratus.domain.ports.state_store_port import StateStorePort
from stratus.domain.services.reconciler import (
    PlanAction,
    ResourceChange,
    plan_change,
)
from stratus.domain.value_objects.resource_data import ResourceData

if TYPE_CHECKING:
    from stratus.infrastructure.telemetry.otel_exporter import OTELExporter

logger = logging.getLogger(__name__)


def failure_message(error: OrchestrationError) -> str:
    return "; ".join(f"{name}: {err}" for name, err in sorted(error.failures.items()))


async def read_data_source(
    provider: ProviderPort, decl: DataDeclaration, attributes: dict[str, Any]
) -> dict[str, Any]:
    data_source = provider.data_source(decl.type)
    d = ResourceData(decl.type, data_source.schema, config=attributes)
    data_source.validate(d)
    await data_source.read(d)
    logger.debug("%s: read %s", decl.key, d.id)
    return d.to_state()


def projected_values(change: ResourceChange, config: dict[str, Any]) -> dict[str, Any]:
    """Attributes a dependent can rely on once ``change`` is applied."""
    if change.action == PlanAction.NO_OP:
        return dict(change.before)
    if change.action == PlanAction.UPDATE:
        return {**change.before, **config}
    # a new object: only declared values are known
    return {k: v for k, v in config.items() if v is not None}


class PlanConfiguration:
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

    def _change_for(
        self,
        decl: ResourceDeclaration,
        config: dict[str, Any],
        record: Optional[ResourceRecord],
    ) -> ResourceChange:
        resource = self.provider.resource(decl.type)
        d = ResourceData(decl.type, resource.schema, config=config)
        resource.validate(d)

        if record is not None and record.type != decl.type:
            return ResourceChange(
                decl.address,
                decl.type,
                PlanAction.REPLACE,
                changed=("type",),
                force_new=("type",),
                before=dict(record.attributes),
                after=dict(config),
            )
        return plan_change(
            resource.schema,
            config,
            record.attributes if record else None,
            updatable=resource.updatable,
            address=decl.address,
            type_name=decl.type,
        )

    async def execute(self, configuration: Configuration, refresh: bool = True) -> PlanResult:
        if refresh:
            _, records = await self.refresher.execute(persist=False)
        else:
            records = {r.address: r for r in self.state_store.list()}

        known = configuration.known()
        deps = configuration.dependency_map()
        values: dict[str, dict[str, Any]] = {}
        result = PlanResult()

        def resource_step(decl: ResourceDeclaration):
            async def step(context: dict[str, Any], completed: dict[str, Any]) -> ResourceChange:
                config = resolve(decl.attributes, values, known)
                change = self._change_for(decl, config, records.get(decl.address))
                values[decl.address] = projected_values(change, config)
                return change
            return step

        def data_step(decl: DataDeclaration):
            async def step(context: dict[str, Any], completed: dict[str, Any]) -> None:
                attributes = resolve(decl.attributes, values, known)
                if contains_unknown(attributes):
                    logger.info("%s: read deferred until apply", decl.key)
                    return
                values[decl.key] = await read_data_source(self.provider, decl, attributes)
                result.data[decl.key] = values[decl.key]
            return step

        steps = [
            WorkflowStep(address, resource_step(decl), deps[address])
            for address, decl in configuration.resources.items()
        ] + [
            WorkflowStep(decl.key, data_step(decl), deps[decl.key])
            for decl in configuration.data.values()
        ]

        try:
            completed = await DAGOrchestrator(steps).execute({})
        except OrchestrationError as e:
            if not e.failures:
                raise
            raise OrchestrationError(
                f"Plan failed: {failure_message(e)}",
                failures=e.failures,
                skipped=e.skipped,
                completed=e.completed,
            ) from e

        changes = [
            completed[address] for address in sorted(configuration.resources)
        ]
        for address in sorted(set(records) - set(configuration.resources)):
            record = records[address]
            changes.append(
                ResourceChange(
                    address, record.type, PlanAction.DELETE, before=dict(record.attributes)
                )
            )
        result.changes = changes
        logger.info("Plan: %s", result.summary())
        return result


