"""Integration tests for a full plan / apply / refresh / destroy cycle.

The container is wired by the composition root as in production; only the
network transport is replaced by an in-process fake of the LTS and VPC APIs.
"""

import json

import httpx
import pytest
import pytest_asyncio

from stratus.application.dtos.configuration import Configuration, ImportRequest
from stratus.composition_root import create_container
from stratus.domain.services.reconciler import PlanAction
from stratus.infrastructure.config import CloudConfig, PollingConfig, StateConfig, StratusConfig


class FakeCloud:
    """Just enough of the LTS and VPC APIs to manage log groups and ports."""

    def __init__(self):
        self.groups = {}
        self.ports = {}
        self._counter = 0

    def _next_id(self, prefix):
        self._counter += 1
        return f"{prefix}-{self._counter}"

    def __call__(self, request: httpx.Request) -> httpx.Response:
        service = request.url.host.split(".")[0]
        parts = request.url.path.strip("/").split("/")
        body = json.loads(request.content) if request.content else None
        if service == "lts":
            return self._lts(request.method, parts[3:], body)
        return self._vpc(request.method, parts[2:], body)

    def _lts(self, method, rest, body):
        if method == "POST":
            group_id = self._next_id("group")
            self.groups[group_id] = {
                "log_group_id": group_id,
                "log_group_name": body["log_group_name"],
                "ttl_in_days": 7,
            }
            return httpx.Response(201, json={"log_group_id": group_id})
        group = self.groups.get(rest[0])
        if group is None:
            return httpx.Response(404, json={"error_msg": "log group not found"})
        if method == "DELETE":
            del self.groups[rest[0]]
            return httpx.Response(204)
        return httpx.Response(200, json=group)

    def _vpc(self, method, rest, body):
        if method == "POST":
            port_id = self._next_id("port")
            self.ports[port_id] = dict(body["port"], id=port_id, status="DOWN", fixed_ips=[])
            return httpx.Response(201, json={"port": self.ports[port_id]})
        port = self.ports.get(rest[0])
        if port is None:
            return httpx.Response(404, json={"NeutronError": "port not found"})
        if method == "DELETE":
            del self.ports[rest[0]]
            return httpx.Response(204)
        if method == "PUT":
            port.update(body["port"])
        return httpx.Response(200, json={"port": port})


CONFIGURATION = {
    "resources": {
        "lts_group_v2.app": {"type": "lts_group_v2", "attributes": {"group_name": "app"}},
        "networking_port_v2.web": {
            "type": "networking_port_v2",
            "attributes": {
                "network_id": "net-1",
                "name": "${lts_group_v2.app.group_name}-port",
                "no_security_groups": True,
            },
        },
    }
}


@pytest.fixture
def cloud():
    return FakeCloud()


@pytest_asyncio.fixture
async def container(cloud, tmp_path):
    config = StratusConfig(
        cloud=CloudConfig(project_id="proj", endpoint_template="http://{service}.test"),
        polling=PollingConfig(initial_delay=0, interval=0.001, not_found_checks=2),
        state=StateConfig(path=str(tmp_path / "state.db")),
    )
    container = create_container(config, transport=httpx.MockTransport(cloud))
    yield container
    await container.close()


class TestProviderFlow:
    @pytest.mark.asyncio
    async def test_full_lifecycle(self, container, cloud):
        configuration = Configuration.from_dict(CONFIGURATION)

        plan = await container.plan.execute(configuration)
        assert plan.summary() == "2 to create, 0 to update, 0 to replace, 0 to delete"

        result = await container.apply.execute(configuration)
        assert result.success, result.failed
        assert sorted(result.created) == ["lts_group_v2.app", "networking_port_v2.web"]
        port = container.state_store.get("networking_port_v2.web")
        assert port.attributes["name"] == "app-port"
        assert port.depends_on == ["lts_group_v2.app"]
        assert list(cloud.ports.values())[0]["security_groups"] == []

        plan = await container.plan.execute(configuration)
        assert not plan.has_changes

        destroyed = await container.destroy.execute(configuration)
        assert destroyed.success
        assert cloud.groups == {}
        assert cloud.ports == {}
        assert container.state_store.list() == []

    @pytest.mark.asyncio
    async def test_out_of_band_changes(self, container, cloud):
        configuration = Configuration.from_dict(CONFIGURATION)
        await container.apply.execute(configuration)

        cloud.groups.clear()
        port = next(iter(cloud.ports.values()))
        port["name"] = "renamed"

        plan = await container.plan.execute(configuration)
        actions = {c.address: c.action for c in plan.changes}
        assert actions["lts_group_v2.app"] == PlanAction.CREATE
        assert actions["networking_port_v2.web"] == PlanAction.UPDATE

        result = await container.apply.execute(configuration)
        assert result.success, result.failed
        assert result.created == ["lts_group_v2.app"]
        assert result.updated == ["networking_port_v2.web"]
        assert port["name"] == "app-port"
        assert len(cloud.groups) == 1

        history = container.state_store.get_operations(address="lts_group_v2.app")
        assert [h["operation"] for h in history].count("create") == 2

    @pytest.mark.asyncio
    async def test_refresh_and_import(self, container, cloud):
        configuration = Configuration.from_dict(CONFIGURATION)
        await container.apply.execute(configuration)
        cloud.groups["group-99"] = {"log_group_id": "group-99", "log_group_name": "legacy", "ttl_in_days": 30}

        record = await container.import_resource.execute(
            ImportRequest(address="lts_group_v2.legacy", type="lts_group_v2", resource_id="group-99")
        )
        assert record.attributes["group_name"] == "legacy"

        del cloud.groups["group-99"]
        refreshed, _ = await container.refresh.execute()
        assert refreshed.vanished == ["lts_group_v2.legacy"]
        assert container.state_store.get("lts_group_v2.legacy") is None
