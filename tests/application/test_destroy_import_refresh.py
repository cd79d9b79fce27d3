"""Tests for the destroy, import, refresh and data source use cases."""

import pytest
import pytest_asyncio

from stratus.application.dtos.configuration import Configuration, ImportRequest
from stratus.application.use_cases.apply import ApplyConfiguration
from stratus.application.use_cases.destroy import DestroyResources
from stratus.application.use_cases.import_resource import ImportResource
from stratus.application.use_cases.read_data_source import ReadDataSource
from stratus.application.use_cases.refresh import RefreshState
from stratus.domain.errors import ProviderError, ValidationError
from stratus.domain.events import (
    ResourceDeletedEvent,
    ResourceDriftedEvent,
    ResourceVanishedEvent,
)
from stratus.infrastructure.event_bus import EventBus

T = "memory_thing_v1"

CHAIN = Configuration.from_dict({
    "resources": {
        "memory_thing_v1.net": {"type": T, "attributes": {"name": "net"}},
        "memory_thing_v1.port": {
            "type": T,
            "attributes": {"name": "port", "parent_id": "${memory_thing_v1.net.id}"},
        },
        "memory_thing_v1.vm": {
            "type": T,
            "attributes": {"name": "vm"},
            "depends_on": ["memory_thing_v1.port"],
        },
        "memory_thing_v1.logs": {"type": T, "attributes": {"name": "logs"}},
    }
})


@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
def use_case_args(memory_provider, state_store, bus):
    return memory_provider, state_store, bus


@pytest_asyncio.fixture
async def applied(use_case_args):
    result = await ApplyConfiguration(*use_case_args).execute(CHAIN)
    assert result.success
    return result


class TestDestroy:
    @pytest.mark.asyncio
    async def test_reverse_dependency_order(self, applied, use_case_args, memory_provider, state_store, bus):
        memory_provider.thing.calls.clear()

        result = await DestroyResources(*use_case_args).execute(CHAIN)

        assert result.success
        assert result.deleted == sorted(CHAIN.resources)
        deletes = [name for op, name in memory_provider.thing.calls if op == "delete"]
        assert deletes.index("vm") < deletes.index("port") < deletes.index("net")
        assert state_store.list() == []
        assert sum(isinstance(e, ResourceDeletedEvent) for e in bus.published) == 4

    @pytest.mark.asyncio
    async def test_targets_include_dependents(self, applied, use_case_args, state_store):
        result = await DestroyResources(*use_case_args).execute(targets=["memory_thing_v1.port"])

        assert result.deleted == ["memory_thing_v1.port", "memory_thing_v1.vm"]
        assert [r.address for r in state_store.list()] == [
            "memory_thing_v1.logs", "memory_thing_v1.net",
        ]

    @pytest.mark.asyncio
    async def test_failure_keeps_dependencies(self, applied, use_case_args, memory_provider, state_store):
        memory_provider.thing.failures[("delete", "port")] = ProviderError("port in use")

        result = await DestroyResources(*use_case_args).execute()

        assert "port in use" in result.failed["memory_thing_v1.port"]
        assert result.skipped == ["memory_thing_v1.net"]
        assert sorted(result.deleted) == ["memory_thing_v1.logs", "memory_thing_v1.vm"]
        assert state_store.get("memory_thing_v1.net") is not None


class TestImport:
    @pytest.mark.asyncio
    async def test_import_existing_object(self, use_case_args, memory_provider, state_store):
        memory_provider.thing.objects["ext-1"] = {"name": "external", "size": 4}

        record = await ImportResource(*use_case_args).execute(
            ImportRequest(address="memory_thing_v1.ext", type=T, resource_id="ext-1")
        )

        assert record.id == "ext-1"
        assert record.attributes["size"] == 4
        assert state_store.get("memory_thing_v1.ext").attributes["name"] == "external"

    @pytest.mark.asyncio
    async def test_import_missing_object(self, use_case_args, state_store):
        with pytest.raises(ProviderError, match="not found"):
            await ImportResource(*use_case_args).execute(
                ImportRequest(address="memory_thing_v1.ext", type=T, resource_id="nope")
            )
        assert state_store.get("memory_thing_v1.ext") is None

    @pytest.mark.asyncio
    async def test_import_existing_address_rejected(self, applied, use_case_args):
        with pytest.raises(ValidationError, match="already managed"):
            await ImportResource(*use_case_args).execute(
                ImportRequest(address="memory_thing_v1.net", type=T, resource_id="x")
            )

    @pytest.mark.asyncio
    async def test_import_not_supported(self, use_case_args, memory_provider):
        memory_provider.thing.importable = False
        with pytest.raises(ValidationError, match="does not support import"):
            await ImportResource(*use_case_args).execute(
                ImportRequest(address="memory_thing_v1.ext", type=T, resource_id="x")
            )


class TestRefresh:
    @pytest.mark.asyncio
    async def test_drift_and_vanished(self, applied, use_case_args, memory_provider, state_store, bus):
        net_id = state_store.get("memory_thing_v1.net").id
        logs_id = state_store.get("memory_thing_v1.logs").id
        memory_provider.thing.objects[net_id]["size"] = 9
        del memory_provider.thing.objects[logs_id]

        result, records = await RefreshState(*use_case_args).execute()

        assert result.vanished == ["memory_thing_v1.logs"]
        assert result.drifted == {"memory_thing_v1.net": ["size"]}
        assert "memory_thing_v1.logs" not in records
        assert state_store.get("memory_thing_v1.logs") is None
        assert state_store.get("memory_thing_v1.net").attributes["size"] == 9
        types = [type(e) for e in bus.published]
        assert ResourceDriftedEvent in types
        assert ResourceVanishedEvent in types

    @pytest.mark.asyncio
    async def test_without_persist(self, applied, use_case_args, memory_provider, state_store):
        memory_provider.thing.objects.clear()

        result, records = await RefreshState(*use_case_args).execute(persist=False)

        assert len(result.vanished) == 4
        assert records == {}
        assert len(state_store.list()) == 4

    @pytest.mark.asyncio
    async def test_read_failure_keeps_record(self, applied, use_case_args, memory_provider, state_store):
        async def broken_read(d):
            raise ProviderError("read exploded")

        memory_provider.thing.read = broken_read

        result, records = await RefreshState(*use_case_args).execute()

        assert len(result.failed) == 4
        assert records["memory_thing_v1.net"].id == state_store.get("memory_thing_v1.net").id


class TestReadDataSource:
    @pytest.mark.asyncio
    async def test_read(self, memory_provider):
        values = await ReadDataSource(memory_provider).execute("memory_lookup_v1", {"key": "abc"})
        assert values == {"key": "abc", "value": "value-of-abc", "id": "abc"}

    @pytest.mark.asyncio
    async def test_unknown_type(self, memory_provider):
        with pytest.raises(ValidationError, match="unknown data source type"):
            await ReadDataSource(memory_provider).execute("nope_v1")
