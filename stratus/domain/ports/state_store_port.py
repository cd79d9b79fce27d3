"""
State Store Port

Architectural Intent:
- Persistence contract for resource records and the operation history
"""

from typing import Optional, Protocol, runtime_checkable

from stratus.domain.entities.resource_record import ResourceRecord


@runtime_checkable
class StateStorePort(Protocol):
    def get(self, address: str) -> Optional[ResourceRecord]: ...

    def list(self) -> list[ResourceRecord]: ...

    def put(self, record: ResourceRecord) -> None: ...

    def remove(self, address: str) -> bool: ...

    def record_operation(
        self,
        address: str,
        operation: str,
        status: str,
        duration_seconds: float = 0.0,
        error: str = "",
    ) -> int: ...
