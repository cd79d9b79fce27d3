"""
Router Interface (networking_router_interface_v2)

Domain Logic:
- The interface is represented by its router port; the port id is the
  resource id
- Removing an interface that is still in use answers 409 and is retried
  until the port is gone (404)
"""

from __future__ import annotations
import logging
from typing import Any

from stratus.domain.errors import ApiError, ConflictError, NotFoundError, ProviderError
from stratus.domain.services.state_waiter import DELETED
from stratus.domain.value_objects.attribute import Attribute
from stratus.domain.value_objects.resource_data import ResourceData
from stratus.infrastructure.resources.base import BaseResource

logger = logging.getLogger(__name__)

SERVICE = "vpc"

ACTIVE = "ACTIVE"
PENDING = ("BUILD", "PENDING_CREATE", "PENDING_UPDATE")


class NetworkingRouterInterfaceV2(BaseResource):
    type_name = "networking_router_interface_v2"
    updatable = False
    schema = {
        "region": Attribute(optional=True, computed=True, force_new=True),
        "router_id": Attribute(required=True, force_new=True),
        "subnet_id": Attribute(optional=True, force_new=True),
        "port_id": Attribute(optional=True, computed=True, force_new=True),
    }

    def _interface_body(self, d: ResourceData) -> dict[str, Any]:
        body = {}
        for key in ("subnet_id", "port_id"):
            value, ok = d.get_ok(key)
            if ok:
                body[key] = value
        return body

    async def create(self, d: ResourceData) -> None:
        router_id = d.get("router_id")
        body = self._interface_body(d)
        logger.debug("Adding interface to router %s: %s", router_id, body)
        try:
            created = await self.client.put(
                SERVICE, f"v2.0/routers/{router_id}/add_router_interface", json=body
            )
        except ApiError as e:
            raise ProviderError(f"error creating router interface: {e}") from e
        port_id = created["port_id"]
        logger.info("Router interface port ID: %s", port_id)

        async def refresh():
            result = await self.client.get(SERVICE, f"v2.0/ports/{port_id}")
            port = result["port"]
            return port, port.get("status", "")

        d.set_id(port_id)
        await self.wait_for(
            refresh,
            target=(ACTIVE,),
            pending=PENDING,
            timeout=d.timeouts.create,
            description=f"router interface {port_id}",
        )
        await self.read(d)

    async def read(self, d: ResourceData) -> None:
        try:
            body = await self.client.get(SERVICE, f"v2.0/ports/{d.id}")
        except NotFoundError:
            d.set_id("")
            return
        except ApiError as e:
            raise ProviderError(f"error retrieving router interface: {e}") from e
        port = body["port"]
        logger.debug("Retrieved router interface %s: %s", d.id, port)
        d.set("port_id", port.get("id", d.id))
        fixed_ips = port.get("fixed_ips") or []
        if fixed_ips and not d.get("subnet_id"):
            d.set("subnet_id", fixed_ips[0].get("subnet_id"))
        d.set("region", self.region(d))

    async def delete(self, d: ResourceData) -> None:
        router_id = d.get("router_id")
        port_id = d.id
        body = {"subnet_id": d.get("subnet_id"), "port_id": d.get("port_id")}
        body = {k: v for k, v in body.items() if v}

        async def refresh():
            logger.debug("Attempting to delete router interface %s", port_id)
            result = await self.client.get(SERVICE, f"v2.0/ports/{port_id}")
            try:
                await self.client.put(
                    SERVICE, f"v2.0/routers/{router_id}/remove_router_interface", json=body
                )
            except ConflictError:
                logger.debug("Router interface %s is still in use", port_id)
            return result["port"], ACTIVE

        try:
            await self.wait_for(
                refresh,
                target=(DELETED,),
                pending=(ACTIVE,),
                timeout=d.timeouts.delete,
                description=f"router interface {port_id}",
            )
        except ApiError as e:
            raise ProviderError(f"error deleting router interface: {e}") from e
        d.set_id("")
