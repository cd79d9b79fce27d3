"""
Import Resource Use Case

Adopts an existing cloud object into state by its id. The adapter's import
hook reads the object; the record is written only when it was found.
"""

from __future__ import annotations
import logging
from typing import Optional, TYPE_CHECKING

from stratus.application.dtos.configuration import ImportRequest
from stratus.application.use_cases.resource_operations import ResourceOperations
from stratus.domain.entities.resource_record import ResourceRecord
from stratus.domain.errors import ProviderError, ValidationError
from stratus.domain.ports.event_bus_port import EventBusPort
from stratus.domain.ports.resource_port import ProviderPort
from stratus.domain.ports.state_store_port import StateStorePort

if TYPE_CHECKING:
    from stratus.infrastructure.telemetry.otel_exporter import OTELExporter

logger = logging.getLogger(__name__)


class ImportResource:
    def __init__(
        self,
        provider: ProviderPort,
        state_store: StateStorePort,
        event_bus: EventBusPort,
        telemetry: Optional["OTELExporter"] = None,
    ):
        self.provider = provider
        self.state_store = state_store
        self.operations = ResourceOperations(provider, state_store, event_bus, telemetry)

    async def execute(self, request: ImportRequest) -> ResourceRecord:
        existing = self.state_store.get(request.address)
        if existing is not None:
            raise ValidationError(
                f"{request.address} is already managed (id {existing.id}); remove it first"
            )

        resource = self.provider.resource(request.type)
        if not resource.importable:
            raise ValidationError(f"{request.type} does not support import")

        d = self.operations.build_data(resource, timeouts=request.timeouts)
        d.set_id(request.resource_id)
        await resource.import_state(d)
        if not d.id:
            raise ProviderError(f"{request.type} {request.resource_id} not found")

        record = ResourceRecord(
            address=request.address,
            type=request.type,
            id=d.id,
            attributes=d.to_state(),
        )
        self.state_store.put(record)
        self.state_store.record_operation(request.address, "import", "success", 0.0)
        logger.info("Imported %s as %s", request.resource_id, request.address)
        return record
