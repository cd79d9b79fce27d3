"""
Provider Registry

Architectural Intent:
- Single place that knows every resource and data-source type
- Builds adapters bound to one API client and the run's polling overrides
"""

from __future__ import annotations
from typing import Optional, TYPE_CHECKING

from stratus.domain.errors import ValidationError
from stratus.domain.ports.cloud_api_port import CloudApiPort
from stratus.infrastructure.data_sources.base import BaseDataSource
from stratus.infrastructure.data_sources.identity_credential_v3 import IdentityCredentialV3
from stratus.infrastructure.data_sources.kms_data_key_v1 import KMSDataKeyV1
from stratus.infrastructure.resources.base import BaseResource
from stratus.infrastructure.resources.compute_floatingip_associate_v2 import (
    ComputeFloatingIPAssociateV2,
)
from stratus.infrastructure.resources.compute_instance_v2 import ComputeInstanceV2
from stratus.infrastructure.resources.dcs_instance_v1 import DCSInstanceV1
from stratus.infrastructure.resources.ims_image_v2 import IMSImageV2
from stratus.infrastructure.resources.lb_monitor_v2 import LBMonitorV2
from stratus.infrastructure.resources.lts_group_v2 import LTSGroupV2
from stratus.infrastructure.resources.networking_port_v2 import NetworkingPortV2
from stratus.infrastructure.resources.networking_router_interface_v2 import (
    NetworkingRouterInterfaceV2,
)
from stratus.infrastructure.resources.sfs_share_access_rules_v2 import SFSShareAccessRulesV2

if TYPE_CHECKING:
    from stratus.infrastructure.config import PollingConfig
    from stratus.infrastructure.telemetry.otel_exporter import OTELExporter

RESOURCE_TYPES: dict[str, type[BaseResource]] = {
    cls.type_name: cls
    for cls in (
        LBMonitorV2,
        NetworkingPortV2,
        NetworkingRouterInterfaceV2,
        LTSGroupV2,
        SFSShareAccessRulesV2,
        IMSImageV2,
        ComputeInstanceV2,
        ComputeFloatingIPAssociateV2,
        DCSInstanceV1,
    )
}

DATA_SOURCE_TYPES: dict[str, type[BaseDataSource]] = {
    cls.type_name: cls for cls in (IdentityCredentialV3, KMSDataKeyV1)
}


class Provider:
    def __init__(
        self,
        client: CloudApiPort,
        polling: Optional["PollingConfig"] = None,
        telemetry: Optional["OTELExporter"] = None,
    ):
        self.client = client
        self._polling = polling
        self._telemetry = telemetry
        self._resources: dict[str, BaseResource] = {}

    def resource(self, type_name: str) -> BaseResource:
        if type_name not in RESOURCE_TYPES:
            raise ValidationError(f"unknown resource type: {type_name}")
        if type_name not in self._resources:
            kwargs = {}
            if self._polling is not None:
                kwargs = {
                    "poll_delay": self._polling.initial_delay,
                    "poll_interval": self._polling.interval,
                    "not_found_checks": self._polling.not_found_checks,
                }
            self._resources[type_name] = RESOURCE_TYPES[type_name](
                self.client, telemetry=self._telemetry, **kwargs
            )
        return self._resources[type_name]

    def data_source(self, type_name: str) -> BaseDataSource:
        if type_name not in DATA_SOURCE_TYPES:
            raise ValidationError(f"unknown data source type: {type_name}")
        return DATA_SOURCE_TYPES[type_name](self.client)

    @staticmethod
    def resource_types() -> list[str]:
        return sorted(RESOURCE_TYPES)

    @staticmethod
    def data_source_types() -> list[str]:
        return sorted(DATA_SOURCE_TYPES)
