"""
Floating IP Association (compute_floatingip_associate_v2)

The resource id is ``floating_ip/instance_id/fixed_ip``; fixed_ip may be
empty, in which case the server picks its first fixed address.
"""

from __future__ import annotations
import logging
from typing import Any

from stratus.domain.errors import ApiError, NotFoundError, ProviderError, ValidationError
from stratus.domain.value_objects.attribute import Attribute
from stratus.domain.value_objects.resource_data import ResourceData
from stratus.infrastructure.resources.base import BaseResource

logger = logging.getLogger(__name__)

SERVICE = "ecs"

ASSOCIATED = "ASSOCIATED"
PENDING = "PENDING"


def format_associate_id(floating_ip: str, instance_id: str, fixed_ip: str = "") -> str:
    return f"{floating_ip}/{instance_id}/{fixed_ip or ''}"


def parse_associate_id(resource_id: str) -> tuple[str, str, str]:
    parts = resource_id.split("/")
    if len(parts) < 2 or not parts[0] or not parts[1]:
        raise ValidationError(
            f"invalid floating IP association id {resource_id!r}, "
            "expected floating_ip/instance_id/fixed_ip"
        )
    fixed_ip = parts[2] if len(parts) > 2 else ""
    return parts[0], parts[1], fixed_ip


def _has_floating_ip(server: dict[str, Any], floating_ip: str) -> bool:
    for addresses in (server.get("addresses") or {}).values():
        for address in addresses:
            if address.get("OS-EXT-IPS:type") == "floating" and address.get("addr") == floating_ip:
                return True
    return False


class ComputeFloatingIPAssociateV2(BaseResource):
    type_name = "compute_floatingip_associate_v2"
    updatable = False
    importable = True
    poll_delay = 0.0
    poll_min_timeout = 1.0
    schema = {
        "region": Attribute(optional=True, computed=True, force_new=True),
        "floating_ip": Attribute(required=True, force_new=True),
        "instance_id": Attribute(required=True, force_new=True),
        "fixed_ip": Attribute(optional=True, force_new=True),
    }

    def _server(self, instance_id: str) -> str:
        return f"v2.1/{self.client.project_id}/servers/{instance_id}"

    async def create(self, d: ResourceData) -> None:
        floating_ip = d.get("floating_ip")
        instance_id = d.get("instance_id")
        fixed_ip = d.get("fixed_ip") or ""

        action: dict[str, Any] = {"address": floating_ip}
        if fixed_ip:
            action["fixed_address"] = fixed_ip
        logger.debug("Associating %s with instance %s", floating_ip, instance_id)
        try:
            await self.client.post(
                SERVICE, f"{self._server(instance_id)}/action", json={"addFloatingIp": action}
            )
        except ApiError as e:
            raise ProviderError(
                f"error associating floating IP {floating_ip} to instance {instance_id}: {e}"
            ) from e

        async def refresh():
            body = await self.client.get(SERVICE, self._server(instance_id))
            server = body["server"]
            return server, ASSOCIATED if _has_floating_ip(server, floating_ip) else PENDING

        await self.wait_for(
            refresh,
            target=(ASSOCIATED,),
            pending=(PENDING,),
            timeout=d.timeouts.create,
            description=f"floating IP {floating_ip}",
        )
        d.set_id(format_associate_id(floating_ip, instance_id, fixed_ip))
        await self.read(d)

    async def read(self, d: ResourceData) -> None:
        floating_ip, instance_id, fixed_ip = parse_associate_id(d.id)
        try:
            body = await self.client.get(SERVICE, self._server(instance_id))
        except NotFoundError:
            d.set_id("")
            return
        except ApiError as e:
            raise ProviderError(f"error retrieving instance {instance_id}: {e}") from e

        if not _has_floating_ip(body["server"], floating_ip):
            logger.info("Floating IP %s is no longer associated with %s", floating_ip, instance_id)
            d.set_id("")
            return
        d.set("floating_ip", floating_ip)
        d.set("instance_id", instance_id)
        d.set("fixed_ip", fixed_ip)
        d.set("region", self.region(d))

    async def delete(self, d: ResourceData) -> None:
        floating_ip, instance_id, _ = parse_associate_id(d.id)
        try:
            await self.client.post(
                SERVICE,
                f"{self._server(instance_id)}/action",
                json={"removeFloatingIp": {"address": floating_ip}},
            )
        except NotFoundError:
            logger.debug("Instance %s already gone", instance_id)
        except ApiError as e:
            raise ProviderError(
                f"error disassociating floating IP {floating_ip} from instance {instance_id}: {e}"
            ) from e
        d.set_id("")

    async def import_state(self, d: ResourceData) -> None:
        parse_associate_id(d.id)
        await super().import_state(d)
