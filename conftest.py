"""Global test configuration.

Provides an in-memory CloudApiPort for resource adapter tests and an
in-memory provider for use case tests.
"""

from typing import Any, Optional

import pytest

from stratus.domain.errors import ValidationError, api_error_for
from stratus.domain.value_objects.attribute import INT, Attribute, validate_config
from stratus.domain.value_objects.resource_data import ResourceData
from stratus.domain.value_objects.timeouts import ResourceTimeouts
from stratus.infrastructure.repositories.sqlite_state_repository import SQLiteStateRepository


class FakeCloudApi:
    """Scripted cloud API.

    Responses are queued per (method, service, path); the last queued
    response repeats. Exceptions are raised, callables are called with
    the request body.
    """

    def __init__(self, project_id: str = "proj", region: str = "eu-de"):
        self._project_id = project_id
        self._region = region
        self._routes: dict[tuple[str, str, str], list[Any]] = {}
        self.calls: list[dict[str, Any]] = []

    @property
    def project_id(self) -> str:
        return self._project_id

    @property
    def region(self) -> str:
        return self._region

    def route(self, method: str, service: str, path: str, *responses: Any) -> None:
        self._routes[(method.upper(), service, path)] = list(responses) or [None]

    def not_found(self, method: str, service: str, path: str) -> None:
        self.route(method, service, path, api_error_for(404, method, path))

    def requests(self, method: Optional[str] = None, path: Optional[str] = None) -> list[dict[str, Any]]:
        return [
            c for c in self.calls
            if (method is None or c["method"] == method.upper())
            and (path is None or c["path"] == path)
        ]

    async def request(
        self,
        method: str,
        service: str,
        path: str,
        json: Optional[Any] = None,
        params: Optional[dict[str, Any]] = None,
        headers: Optional[dict[str, str]] = None,
    ) -> Any:
        method = method.upper()
        self.calls.append({
            "method": method,
            "service": service,
            "path": path,
            "json": json,
            "params": params,
            "headers": headers,
        })
        key = (method, service, path)
        if key not in self._routes:
            raise AssertionError(f"unexpected request: {method} {service} {path}")
        queue = self._routes[key]
        response = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(response, BaseException):
            raise response
        if callable(response):
            return response(json)
        return response

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


class MemoryResource:
    """Resource type backed by a dict, for use case tests."""

    type_name = "memory_thing_v1"
    schema = {
        "name": Attribute(required=True),
        "size": Attribute(type=INT, optional=True),
        "zone": Attribute(optional=True, force_new=True),
        "parent_id": Attribute(optional=True),
        "status": Attribute(computed=True),
    }
    updatable = True
    importable = True
    default_timeouts = ResourceTimeouts()

    def __init__(self):
        self.objects: dict[str, dict[str, Any]] = {}
        self.calls: list[tuple[str, str]] = []
        self.failures: dict[tuple[str, str], BaseException] = {}
        self._counter = 0

    def _check(self, operation: str, d: ResourceData) -> None:
        name = d.get("name")
        self.calls.append((operation, name))
        error = self.failures.get((operation, name))
        if error is not None:
            raise error

    def validate(self, d: ResourceData) -> None:
        validate_config(self.schema, d.config)

    async def create(self, d: ResourceData) -> None:
        self._check("create", d)
        self._counter += 1
        object_id = f"{d.get('name')}-{self._counter}"
        self.objects[object_id] = {k: v for k, v in d.config.items() if v is not None}
        d.set_id(object_id)
        await self.read(d)

    async def read(self, d: ResourceData) -> None:
        obj = self.objects.get(d.id)
        if obj is None:
            d.set_id("")
            return
        for key, value in obj.items():
            d.set(key, value)
        d.set("status", "ACTIVE")

    async def update(self, d: ResourceData) -> None:
        self._check("update", d)
        self.objects[d.id].update({k: v for k, v in d.config.items() if v is not None})
        await self.read(d)

    async def delete(self, d: ResourceData) -> None:
        self._check("delete", d)
        self.objects.pop(d.id, None)
        d.set_id("")

    async def import_state(self, d: ResourceData) -> None:
        await self.read(d)


class MemoryDataSource:
    type_name = "memory_lookup_v1"
    schema = {
        "key": Attribute(required=True),
        "value": Attribute(computed=True),
    }

    def __init__(self):
        self.reads: list[str] = []

    def validate(self, d: ResourceData) -> None:
        validate_config(self.schema, d.config)

    async def read(self, d: ResourceData) -> None:
        key = d.get("key")
        self.reads.append(key)
        d.set("value", f"value-of-{key}")
        d.set_id(key)


class MemoryProvider:
    def __init__(self):
        self.thing = MemoryResource()
        self.lookup = MemoryDataSource()

    def resource(self, type_name: str) -> MemoryResource:
        if type_name != MemoryResource.type_name:
            raise ValidationError(f"unknown resource type: {type_name}")
        return self.thing

    def data_source(self, type_name: str) -> MemoryDataSource:
        if type_name != MemoryDataSource.type_name:
            raise ValidationError(f"unknown data source type: {type_name}")
        return self.lookup


@pytest.fixture
def fake_api():
    return FakeCloudApi()


@pytest.fixture
def memory_provider():
    return MemoryProvider()


@pytest.fixture
def state_store(tmp_path):
    store = SQLiteStateRepository(str(tmp_path / "state.db"))
    store.connect()
    yield store
    store.close()
