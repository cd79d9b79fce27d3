"""Tests for the provider registry and the composition root DI container."""

import httpx
import pytest
from unittest.mock import MagicMock

from stratus.composition_root import StratusContainer, create_container
from stratus.domain.errors import UnexpectedStateError, ValidationError
from stratus.infrastructure.config import CloudConfig, PollingConfig, StateConfig, StratusConfig
from stratus.infrastructure.data_sources.kms_data_key_v1 import KMSDataKeyV1
from stratus.infrastructure.http.client import ServiceClient
from stratus.infrastructure.provider import Provider
from stratus.infrastructure.resources.dcs_instance_v1 import DCSInstanceV1
from stratus.infrastructure.resources.lts_group_v2 import LTSGroupV2
from stratus.infrastructure.resources.networking_port_v2 import NetworkingPortV2


class TestProvider:
    def test_resource_types(self):
        assert Provider.resource_types() == [
            "compute_floatingip_associate_v2",
            "compute_instance_v2",
            "dcs_instance_v1",
            "ims_image_v2",
            "lb_monitor_v2",
            "lts_group_v2",
            "networking_port_v2",
            "networking_router_interface_v2",
            "sfs_share_access_rules_v2",
        ]
        assert Provider.data_source_types() == ["identity_credential_v3", "kms_data_key_v1"]

    def test_resource_instances_are_cached(self, fake_api):
        provider = Provider(fake_api)
        group = provider.resource("lts_group_v2")
        assert isinstance(group, LTSGroupV2)
        assert provider.resource("lts_group_v2") is group
        assert group.client is fake_api

    def test_unknown_types(self, fake_api):
        provider = Provider(fake_api)
        with pytest.raises(ValidationError, match="unknown resource type"):
            provider.resource("aws_instance")
        with pytest.raises(ValidationError, match="unknown data source type"):
            provider.data_source("aws_ami")

    def test_polling_overrides(self, fake_api):
        polling = PollingConfig(initial_delay=0, interval=0.5, not_found_checks=3)
        cache = Provider(fake_api, polling=polling).resource("dcs_instance_v1")
        assert cache.poll_delay == 0
        assert cache.poll_interval == 0.5
        assert cache.not_found_checks == 3

    def test_negative_delay_keeps_type_default(self, fake_api):
        cache = Provider(fake_api, polling=PollingConfig()).resource("dcs_instance_v1")
        assert cache.poll_delay == DCSInstanceV1.poll_delay

    def test_zero_not_found_checks_keeps_default(self, fake_api):
        polling = PollingConfig(initial_delay=0, interval=0.001, not_found_checks=0)
        port = Provider(fake_api, polling=polling).resource("networking_port_v2")
        assert port.not_found_checks == NetworkingPortV2.not_found_checks == 20

    @pytest.mark.asyncio
    async def test_zero_not_found_checks_tolerates_missing_polls(self, fake_api):
        polling = PollingConfig(initial_delay=0, interval=0.001, not_found_checks=0)
        port = Provider(fake_api, polling=polling).resource("networking_port_v2")
        states = [None, None, "ACTIVE"]

        async def refresh():
            state = states.pop(0)
            return ({"status": state}, state) if state else (None, "")

        assert await port.wait_for(refresh, ["ACTIVE"]) == {"status": "ACTIVE"}

    @pytest.mark.asyncio
    async def test_failed_wait_reports_elapsed_and_polls(self, fake_api):
        telemetry = MagicMock()
        polling = PollingConfig(initial_delay=0, interval=0.001)
        group = Provider(fake_api, polling=polling, telemetry=telemetry).resource("lts_group_v2")
        states = ["BUILD", "BUILD", "ERROR"]

        async def refresh():
            state = states.pop(0)
            return {"status": state}, state

        with pytest.raises(UnexpectedStateError):
            await group.wait_for(refresh, ["ACTIVE"], ["BUILD"])

        description, outcome, elapsed, polls = telemetry.record_wait.call_args.args
        assert (description, outcome, polls) == ("lts_group_v2", "UnexpectedStateError", 3)
        assert elapsed > 0

    def test_data_source(self, fake_api):
        assert isinstance(Provider(fake_api).data_source("kms_data_key_v1"), KMSDataKeyV1)


def _config(tmp_path):
    return StratusConfig(
        cloud=CloudConfig(project_id="proj", auth_token="tok"),
        state=StateConfig(path=str(tmp_path / "state.db")),
    )


class TestCompositionRoot:
    @pytest.mark.asyncio
    async def test_create_container(self, tmp_path):
        container = create_container(_config(tmp_path))
        try:
            assert isinstance(container, StratusContainer)
            assert isinstance(container.client, ServiceClient)
            assert container.client.project_id == "proj"
            assert container.provider.client is container.client
            assert not container.telemetry.enabled
            assert container.state_store.list() == []
        finally:
            await container.close()

    @pytest.mark.asyncio
    async def test_use_cases_share_dependencies(self, tmp_path):
        container = create_container(_config(tmp_path))
        try:
            assert container.apply.provider is container.provider
            assert container.plan.provider is container.provider
            assert container.apply.state_store is container.state_store
            assert container.apply.operations.event_bus is container.event_bus
            assert container.read_data_source.provider is container.provider
        finally:
            await container.close()

    @pytest.mark.asyncio
    async def test_transport_is_used(self, tmp_path):
        seen = []

        def handler(request):
            seen.append(request.url.host)
            return httpx.Response(200, json={"credentials": []})

        container = create_container(_config(tmp_path), transport=httpx.MockTransport(handler))
        try:
            values = await container.read_data_source.execute("identity_credential_v3")
        finally:
            await container.close()

        assert values["credentials"] == []
        assert seen == ["iam.eu-de.otc.t-systems.com"]
