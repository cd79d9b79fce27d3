"""
Networking Port (networking_port_v2)

Domain Logic:
- A new port counts as available once it is ACTIVE or DOWN (DOWN only
  means nothing is plugged in yet)
- Deletion polls a refresh that issues the DELETE itself until the port
  answers 404
- Updates send explicit empty arrays to remove security groups and address
  pairs, never null
"""

from __future__ import annotations
import logging
from typing import Any

from stratus.domain.errors import ApiError, ProviderError, ValidationError
from stratus.domain.services.state_waiter import DELETED, check_deleted
from stratus.domain.value_objects.attribute import (
    Attribute,
    BOOL,
    LIST,
    MAP,
    SET,
)
from stratus.domain.value_objects.resource_data import ResourceData
from stratus.infrastructure.resources.base import BaseResource

logger = logging.getLogger(__name__)

SERVICE = "vpc"
PORTS = "v2.0/ports"

ACTIVE = "ACTIVE"


def _fixed_ips(d: ResourceData) -> list[dict[str, Any]] | None:
    raw = d.get("fixed_ip") or []
    if not raw:
        return None
    ips = []
    for item in raw:
        ip = {"subnet_id": item["subnet_id"]}
        if item.get("ip_address"):
            ip["ip_address"] = item["ip_address"]
        ips.append(ip)
    return ips


def _address_pairs(d: ResourceData) -> list[dict[str, Any]]:
    pairs = []
    for item in d.get("allowed_address_pairs") or []:
        pair = {"ip_address": item["ip_address"]}
        if item.get("mac_address"):
            pair["mac_address"] = item["mac_address"]
        pairs.append(pair)
    return pairs


class NetworkingPortV2(BaseResource):
    type_name = "networking_port_v2"
    importable = True
    schema = {
        "region": Attribute(optional=True, computed=True, force_new=True),
        "name": Attribute(optional=True),
        "network_id": Attribute(required=True, force_new=True),
        "admin_state_up": Attribute(BOOL, optional=True, computed=True),
        "mac_address": Attribute(optional=True, computed=True, force_new=True),
        "tenant_id": Attribute(optional=True, computed=True, force_new=True),
        "device_owner": Attribute(optional=True, computed=True, force_new=True),
        "security_group_ids": Attribute(SET, optional=True, computed=True),
        "no_security_groups": Attribute(BOOL, optional=True),
        "device_id": Attribute(optional=True, computed=True, force_new=True),
        "fixed_ip": Attribute(
            LIST,
            optional=True,
            elem={
                "subnet_id": Attribute(required=True),
                "ip_address": Attribute(optional=True),
            },
        ),
        "allowed_address_pairs": Attribute(
            SET,
            optional=True,
            computed=True,
            elem={
                "ip_address": Attribute(required=True),
                "mac_address": Attribute(optional=True, computed=True),
            },
        ),
        "value_specs": Attribute(MAP, optional=True, force_new=True),
        "all_fixed_ips": Attribute(LIST, computed=True),
    }

    def validate(self, d: ResourceData) -> None:
        super().validate(d)
        if d.config.get("no_security_groups") and d.config.get("security_group_ids"):
            raise ValidationError(
                "Cannot have both no_security_groups and security_group_ids set"
            )

    async def create(self, d: ResourceData) -> None:
        body: dict[str, Any] = {
            "network_id": d.get("network_id"),
            "admin_state_up": bool(d.get("admin_state_up", False)),
        }
        for key in ("name", "mac_address", "tenant_id", "device_owner", "device_id"):
            value, ok = d.get_ok(key)
            if ok:
                body[key] = value
        fixed_ips = _fixed_ips(d)
        if fixed_ips is not None:
            body["fixed_ips"] = fixed_ips
        pairs = _address_pairs(d)
        if pairs:
            body["allowed_address_pairs"] = pairs

        security_groups = list(d.get("security_group_ids") or [])
        if d.get("no_security_groups"):
            body["security_groups"] = []
        elif security_groups:
            body["security_groups"] = security_groups

        # value_specs go into the request as-is
        body.update(d.get("value_specs") or {})

        logger.debug("Creating port: %s", body)
        try:
            created = await self.client.post(SERVICE, PORTS, json={"port": body})
        except ApiError as e:
            raise ProviderError(f"error creating port: {e}") from e
        port_id = created["port"]["id"]
        logger.info("Port ID: %s", port_id)

        async def refresh():
            result = await self.client.get(SERVICE, f"{PORTS}/{port_id}")
            port = result["port"]
            if port.get("status") in ("DOWN", ACTIVE):
                return port, ACTIVE
            return port, port.get("status", "")

        d.set_id(port_id)
        await self.wait_for(
            refresh,
            target=(ACTIVE,),
            timeout=d.timeouts.create,
            description=f"port {port_id}",
        )
        await self.read(d)

    async def read(self, d: ResourceData) -> None:
        try:
            body = await self.client.get(SERVICE, f"{PORTS}/{d.id}")
        except ApiError as e:
            check_deleted(d, e, "port")
            return
        port = body["port"]
        logger.debug("Retrieved port %s: %s", d.id, port)

        d.set("name", port.get("name"))
        d.set("admin_state_up", port.get("admin_state_up"))
        d.set("network_id", port.get("network_id"))
        d.set("mac_address", port.get("mac_address"))
        d.set("tenant_id", port.get("tenant_id"))
        d.set("device_owner", port.get("device_owner"))
        d.set("device_id", port.get("device_id"))
        d.set("security_group_ids", list(port.get("security_groups") or []))
        d.set(
            "all_fixed_ips",
            [ip.get("ip_address") for ip in port.get("fixed_ips") or []],
        )
        d.set(
            "allowed_address_pairs",
            [
                {"ip_address": p.get("ip_address"), "mac_address": p.get("mac_address")}
                for p in port.get("allowed_address_pairs") or []
            ],
        )
        d.set("region", self.region(d))

    async def update(self, d: ResourceData) -> None:
        opts: dict[str, Any] = {}
        if d.has_change("allowed_address_pairs"):
            opts["allowed_address_pairs"] = _address_pairs(d)
        if d.has_change("no_security_groups") and d.get("no_security_groups"):
            opts["security_groups"] = []
        if d.has_change("security_group_ids"):
            opts["security_groups"] = list(d.get("security_group_ids") or [])
        if d.has_change("name"):
            opts["name"] = d.get("name")
        if d.has_change("admin_state_up"):
            opts["admin_state_up"] = bool(d.get("admin_state_up"))
        if d.has_change("device_owner"):
            opts["device_owner"] = d.get("device_owner")
        if d.has_change("device_id"):
            opts["device_id"] = d.get("device_id")
        if d.has_change("fixed_ip"):
            opts["fixed_ips"] = _fixed_ips(d) or []

        if opts:
            logger.debug("Updating port %s with %s", d.id, opts)
            try:
                await self.client.put(SERVICE, f"{PORTS}/{d.id}", json={"port": opts})
            except ApiError as e:
                raise ProviderError(f"error updating port {d.id}: {e}") from e
        await self.read(d)

    async def delete(self, d: ResourceData) -> None:
        port_id = d.id

        async def refresh():
            logger.debug("Attempting to delete port %s", port_id)
            result = await self.client.get(SERVICE, f"{PORTS}/{port_id}")
            await self.client.delete(SERVICE, f"{PORTS}/{port_id}")
            logger.debug("Port %s still active", port_id)
            return result["port"], ACTIVE

        try:
            await self.wait_for(
                refresh,
                target=(DELETED,),
                pending=(ACTIVE,),
                timeout=d.timeouts.delete,
                description=f"port {port_id}",
            )
        except ApiError as e:
            raise ProviderError(f"error deleting port {port_id}: {e}") from e
        d.set_id("")
