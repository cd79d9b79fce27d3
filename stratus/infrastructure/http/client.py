"""
Service Client

Architectural Intent:
- CloudApiPort implementation on top of httpx.AsyncClient
- One client per provider run, shared by every resource adapter
- Per-service base URLs derived from an endpoint template, so adapters only
  name the service ("vpc", "ims", "dcs", ...) and a path

Design Decisions:
- Static token authentication through the X-Auth-Token header
- Non-2xx responses are raised as ApiError subclasses chosen by status code
- Transport failures surface as ProviderError with the httpx error chained
"""

from __future__ import annotations
import logging
from typing import Any, Optional, TYPE_CHECKING

import httpx

from stratus.domain.errors import ProviderError, api_error_for

if TYPE_CHECKING:
    from stratus.infrastructure.telemetry.otel_exporter import OTELExporter

logger = logging.getLogger(__name__)

DEFAULT_ENDPOINT_TEMPLATE = "https://{service}.{region}.otc.t-systems.com"


def _decode(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


class ServiceClient:
    """Authenticated REST client for one project in one region."""

    def __init__(
        self,
        region: str,
        project_id: str,
        auth_token: str = "",
        endpoint_template: str = DEFAULT_ENDPOINT_TEMPLATE,
        timeout: float = 60.0,
        verify_tls: bool = True,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        telemetry: Optional["OTELExporter"] = None,
    ):
        self._region = region
        self._project_id = project_id
        self._endpoint_template = endpoint_template
        self._telemetry = telemetry
        headers = {"Accept": "application/json"}
        if auth_token:
            headers["X-Auth-Token"] = auth_token
        self._client = httpx.AsyncClient(
            headers=headers,
            timeout=timeout,
            verify=verify_tls,
            transport=transport,
        )

    @property
    def project_id(self) -> str:
        return self._project_id

    @property
    def region(self) -> str:
        return self._region

    def endpoint(self, service: str) -> str:
        return self._endpoint_template.format(
            service=service,
            region=self._region,
            project_id=self._project_id,
        ).rstrip("/")

    async def request(
        self,
        method: str,
        service: str,
        path: str,
        json: Optional[Any] = None,
        params: Optional[dict[str, Any]] = None,
        headers: Optional[dict[str, str]] = None,
    ) -> Any:
        url = f"{self.endpoint(service)}/{path.lstrip('/')}"
        logger.debug("%s %s", method, url)
        try:
            response = await self._client.request(
                method, url, json=json, params=params, headers=headers
            )
        except httpx.HTTPError as e:
            raise ProviderError(f"{method} {url} failed: {e}") from e

        if self._telemetry is not None:
            self._telemetry.record_api_call(service, method, response.status_code)

        if response.is_success:
            return _decode(response)

        body = _decode(response)
        logger.debug("%s %s returned %d: %s", method, url, response.status_code, body)
        raise api_error_for(response.status_code, method, url, body)

    async def get(self, service: str, path: str, **kwargs: Any) -> Any:
        return await self.request("GET", service, path, **kwargs)

    async def post(self, service: str, path: str, **kwargs: Any) -> Any:
        return await self.request("POST", service, path, **kwargs)

    async def put(self, service: str, path: str, **kwargs: Any) -> Any:
        return await self.request("PUT", service, path, **kwargs)

    async def patch(self, service: str, path: str, **kwargs: Any) -> Any:
        return await self.request("PATCH", service, path, **kwargs)

    async def delete(self, service: str, path: str, **kwargs: Any) -> Any:
        return await self.request("DELETE", service, path, **kwargs)

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "ServiceClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()
