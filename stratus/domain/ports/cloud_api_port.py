"""
Cloud API Port

Architectural Intent:
- Port interface for the vendor REST API
- Resource adapters speak in (service, path) pairs; the implementation owns
  endpoints, authentication and error mapping

Design Decisions:
- Uses Protocol for structural typing (no inheritance needed)
- Non-2xx responses are raised as ApiError subclasses, never returned
"""

from typing import Any, Optional, Protocol, runtime_checkable


@runtime_checkable
class CloudApiPort(Protocol):
    """Port for authenticated calls against one cloud project."""

    @property
    def project_id(self) -> str: ...

    @property
    def region(self) -> str: ...

    async def request(
        self,
        method: str,
        service: str,
        path: str,
        json: Optional[Any] = None,
        params: Optional[dict[str, Any]] = None,
        headers: Optional[dict[str, str]] = None,
    ) -> Any:
        """Perform a request and return the decoded JSON body (None when empty)."""
        ...

    async def get(self, service: str, path: str, **kwargs: Any) -> Any: ...

    async def post(self, service: str, path: str, **kwargs: Any) -> Any: ...

    async def put(self, service: str, path: str, **kwargs: Any) -> Any: ...

    async def patch(self, service: str, path: str, **kwargs: Any) -> Any: ...

    async def delete(self, service: str, path: str, **kwargs: Any) -> Any: ...
