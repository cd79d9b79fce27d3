"""
Resource and Data Source Ports

Architectural Intent:
- Contract every resource adapter fulfils
- Use cases drive adapters only through this interface
"""

from typing import Protocol, runtime_checkable

from stratus.domain.value_objects.attribute import Schema
from stratus.domain.value_objects.resource_data import ResourceData
from stratus.domain.value_objects.timeouts import ResourceTimeouts


@runtime_checkable
class ResourcePort(Protocol):
    type_name: str
    schema: Schema
    updatable: bool
    importable: bool
    default_timeouts: ResourceTimeouts

    def validate(self, d: ResourceData) -> None: ...

    async def create(self, d: ResourceData) -> None: ...

    async def read(self, d: ResourceData) -> None:
        """Refresh ``d`` from the cloud; clears the id when the object is gone."""
        ...

    async def update(self, d: ResourceData) -> None: ...

    async def delete(self, d: ResourceData) -> None: ...

    async def import_state(self, d: ResourceData) -> None: ...


@runtime_checkable
class DataSourcePort(Protocol):
    type_name: str
    schema: Schema

    def validate(self, d: ResourceData) -> None: ...

    async def read(self, d: ResourceData) -> None: ...


@runtime_checkable
class ProviderPort(Protocol):
    """Lookup of adapters by type name."""

    def resource(self, type_name: str) -> ResourcePort: ...

    def data_source(self, type_name: str) -> DataSourcePort: ...
