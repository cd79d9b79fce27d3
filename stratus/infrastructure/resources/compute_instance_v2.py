"""
Compute Instance (compute_instance_v2)

Domain Logic:
- A server is usable once it leaves BUILD for ACTIVE
- Deletion is complete when the server reports DELETED or answers 404
- user_data is sent base64-encoded
"""

from __future__ import annotations
import base64
import logging
from typing import Any

from stratus.domain.errors import ApiError, ProviderError
from stratus.domain.services.state_waiter import DELETED, check_deleted
from stratus.domain.value_objects.attribute import Attribute, LIST, MAP
from stratus.domain.value_objects.resource_data import ResourceData
from stratus.infrastructure.resources.base import BaseResource

logger = logging.getLogger(__name__)

SERVICE = "ecs"

ACTIVE = "ACTIVE"
BUILD = "BUILD"
DELETE_PENDING = ("ACTIVE", "SHUTOFF", "ERROR", "DELETING", "SOFT_DELETED")


def _encode_user_data(value: str) -> str:
    return base64.b64encode(value.encode("utf-8")).decode("ascii")


def _access_ip_v4(server: dict[str, Any]) -> str:
    if server.get("accessIPv4"):
        return server["accessIPv4"]
    for addresses in (server.get("addresses") or {}).values():
        for address in addresses:
            if address.get("version") == 4 and address.get("OS-EXT-IPS:type", "fixed") == "fixed":
                return address.get("addr", "")
    return ""


class ComputeInstanceV2(BaseResource):
    type_name = "compute_instance_v2"
    importable = True
    schema = {
        "region": Attribute(optional=True, computed=True, force_new=True),
        "name": Attribute(required=True),
        "image_id": Attribute(optional=True, computed=True, force_new=True),
        "flavor_id": Attribute(optional=True, computed=True, force_new=True),
        "key_pair": Attribute(optional=True, force_new=True),
        "availability_zone": Attribute(optional=True, computed=True, force_new=True),
        "security_groups": Attribute(LIST, optional=True, force_new=True),
        "network": Attribute(
            LIST,
            optional=True,
            force_new=True,
            elem={
                "uuid": Attribute(required=True),
                "fixed_ip_v4": Attribute(optional=True, computed=True),
            },
        ),
        "metadata": Attribute(MAP, optional=True),
        "user_data": Attribute(optional=True, force_new=True),
        "status": Attribute(computed=True),
        "access_ip_v4": Attribute(computed=True),
    }

    def _servers(self) -> str:
        return f"v2.1/{self.client.project_id}/servers"

    def _create_body(self, d: ResourceData) -> dict[str, Any]:
        server: dict[str, Any] = {"name": d.get("name")}
        for key, api_key in (
            ("image_id", "imageRef"),
            ("flavor_id", "flavorRef"),
            ("key_pair", "key_name"),
            ("availability_zone", "availability_zone"),
        ):
            value, ok = d.get_ok(key)
            if ok:
                server[api_key] = value
        groups = d.get("security_groups") or []
        if groups:
            server["security_groups"] = [{"name": name} for name in groups]
        networks = []
        for net in d.get("network") or []:
            entry = {"uuid": net["uuid"]}
            if net.get("fixed_ip_v4"):
                entry["fixed_ip"] = net["fixed_ip_v4"]
            networks.append(entry)
        if networks:
            server["networks"] = networks
        metadata = d.get("metadata") or {}
        if metadata:
            server["metadata"] = metadata
        user_data, ok = d.get_ok("user_data")
        if ok:
            server["user_data"] = _encode_user_data(user_data)
        return server

    async def _refresh_server(self, server_id: str):
        body = await self.client.get(SERVICE, f"{self._servers()}/{server_id}")
        server = body["server"]
        return server, server.get("status", "")

    async def create(self, d: ResourceData) -> None:
        body = self._create_body(d)
        logger.debug("Creating instance: %s", {k: v for k, v in body.items() if k != "user_data"})
        try:
            created = await self.client.post(SERVICE, self._servers(), json={"server": body})
        except ApiError as e:
            raise ProviderError(f"error creating instance: {e}") from e
        server_id = created["server"]["id"]
        d.set_id(server_id)
        logger.info("Instance ID: %s", server_id)

        await self.wait_for(
            lambda: self._refresh_server(server_id),
            target=(ACTIVE,),
            pending=(BUILD,),
            timeout=d.timeouts.create,
            description=f"instance {server_id}",
        )
        await self.read(d)

    async def read(self, d: ResourceData) -> None:
        try:
            body = await self.client.get(SERVICE, f"{self._servers()}/{d.id}")
        except ApiError as e:
            check_deleted(d, e, "instance")
            return
        server = body["server"]
        if server.get("status") == DELETED:
            d.set_id("")
            return
        d.set("name", server.get("name"))
        d.set("status", server.get("status"))
        d.set("metadata", server.get("metadata") or {})
        d.set("access_ip_v4", _access_ip_v4(server))
        image = server.get("image")
        if isinstance(image, dict):
            d.set("image_id", image.get("id"))
        flavor = server.get("flavor")
        if isinstance(flavor, dict):
            d.set("flavor_id", flavor.get("id"))
        if server.get("key_name"):
            d.set("key_pair", server["key_name"])
        if server.get("OS-EXT-AZ:availability_zone"):
            d.set("availability_zone", server["OS-EXT-AZ:availability_zone"])
        d.set("region", self.region(d))

    async def update(self, d: ResourceData) -> None:
        try:
            if d.has_change("name"):
                await self.client.put(
                    SERVICE,
                    f"{self._servers()}/{d.id}",
                    json={"server": {"name": d.get("name")}},
                )
            if d.has_change("metadata"):
                await self.client.put(
                    SERVICE,
                    f"{self._servers()}/{d.id}/metadata",
                    json={"metadata": d.get("metadata") or {}},
                )
        except ApiError as e:
            raise ProviderError(f"error updating instance {d.id}: {e}") from e
        await self.read(d)

    async def delete(self, d: ResourceData) -> None:
        server_id = d.id
        try:
            await self.client.delete(SERVICE, f"{self._servers()}/{server_id}")
        except ApiError as e:
            check_deleted(d, e, "error deleting instance")
            return

        await self.wait_for(
            lambda: self._refresh_server(server_id),
            target=(DELETED,),
            pending=DELETE_PENDING,
            timeout=d.timeouts.delete,
            description=f"instance {server_id}",
        )
        d.set_id("")
