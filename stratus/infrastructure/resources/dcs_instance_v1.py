"""
Distributed Cache Service instance (dcs_instance_v1)

Domain Logic:
- Instances are created asynchronously: CREATING until RUNNING
- Deletion passes through DELETING and ends with a 404
- Backup policy and maintenance window can change in place; engine,
  capacity, network placement and password cannot
"""

from __future__ import annotations
import logging
from typing import Any

from stratus.domain.errors import ApiError, ProviderError
from stratus.domain.services.state_waiter import DELETED, check_deleted
from stratus.domain.value_objects.attribute import Attribute, FLOAT, INT, LIST
from stratus.domain.value_objects.resource_data import ResourceData
from stratus.infrastructure.resources.base import BaseResource

logger = logging.getLogger(__name__)

SERVICE = "dcs"

RUNNING = "RUNNING"
CREATING = "CREATING"
DELETING = "DELETING"

_UPDATABLE = ("name", "description", "security_group_id", "maintain_begin", "maintain_end")


def _backup_policy(d: ResourceData) -> dict[str, Any] | None:
    policies = d.get("backup_policy") or []
    if not policies:
        return None
    policy = policies[0]
    return {
        "save_days": policy.get("save_days"),
        "backup_type": policy.get("backup_type") or "auto",
        "periodical_backup_plan": {
            "begin_at": policy["begin_at"],
            "period_type": policy["period_type"],
            "backup_at": list(policy["backup_at"]),
        },
    }


def _flatten_backup_policy(policy: dict[str, Any] | None) -> list[dict[str, Any]]:
    if not policy:
        return []
    plan = policy.get("periodical_backup_plan") or {}
    return [
        {
            "save_days": policy.get("save_days"),
            "backup_type": policy.get("backup_type"),
            "begin_at": plan.get("begin_at"),
            "period_type": plan.get("period_type"),
            "backup_at": plan.get("backup_at") or [],
        }
    ]


class DCSInstanceV1(BaseResource):
    type_name = "dcs_instance_v1"
    importable = True
    poll_delay = 10.0
    poll_min_timeout = 3.0
    schema = {
        "name": Attribute(required=True),
        "description": Attribute(optional=True),
        "engine": Attribute(required=True, force_new=True, choices=("Redis", "Memcached")),
        "engine_version": Attribute(required=True, force_new=True),
        "capacity": Attribute(FLOAT, required=True, force_new=True),
        "password": Attribute(optional=True, force_new=True, sensitive=True),
        "vpc_id": Attribute(required=True, force_new=True),
        "subnet_id": Attribute(required=True, force_new=True),
        "security_group_id": Attribute(optional=True),
        "available_zones": Attribute(LIST, required=True, force_new=True),
        "product_id": Attribute(required=True, force_new=True),
        "maintain_begin": Attribute(optional=True, computed=True),
        "maintain_end": Attribute(optional=True, computed=True),
        "backup_policy": Attribute(
            LIST,
            optional=True,
            max_items=1,
            elem={
                "save_days": Attribute(INT, optional=True),
                "backup_type": Attribute(
                    optional=True, default="auto", choices=("auto", "manual")
                ),
                "begin_at": Attribute(required=True),
                "period_type": Attribute(required=True),
                "backup_at": Attribute(LIST, required=True),
            },
        ),
        "status": Attribute(computed=True),
        "ip": Attribute(computed=True),
        "port": Attribute(INT, computed=True),
        "resource_spec_code": Attribute(computed=True),
    }

    def _instances(self) -> str:
        return f"v1.0/{self.client.project_id}/instances"

    async def _refresh_instance(self, instance_id: str):
        instance = await self.client.get(SERVICE, f"{self._instances()}/{instance_id}")
        return instance, instance.get("status", "")

    async def create(self, d: ResourceData) -> None:
        body: dict[str, Any] = {
            "name": d.get("name"),
            "engine": d.get("engine"),
            "engine_version": d.get("engine_version"),
            "capacity": d.get("capacity"),
            "vpc_id": d.get("vpc_id"),
            "subnet_id": d.get("subnet_id"),
            "available_zones": list(d.get("available_zones") or []),
            "product_id": d.get("product_id"),
        }
        for key in ("description", "password", "security_group_id", "maintain_begin", "maintain_end"):
            value, ok = d.get_ok(key)
            if ok:
                body[key] = value
        policy = _backup_policy(d)
        if policy:
            body["instance_backup_policy"] = policy

        logger.debug("Creating DCS instance %s", d.get("name"))
        try:
            created = await self.client.post(SERVICE, self._instances(), json=body)
        except ApiError as e:
            raise ProviderError(f"error creating DCS instance: {e}") from e
        instance_id = created["instance_id"]
        d.set_id(instance_id)
        logger.info("DCS instance ID: %s", instance_id)

        await self.wait_for(
            lambda: self._refresh_instance(instance_id),
            target=(RUNNING,),
            pending=(CREATING,),
            timeout=d.timeouts.create,
            description=f"DCS instance {instance_id}",
        )
        await self.read(d)

    async def read(self, d: ResourceData) -> None:
        try:
            instance = await self.client.get(SERVICE, f"{self._instances()}/{d.id}")
        except ApiError as e:
            check_deleted(d, e, "DCS instance")
            return
        logger.debug("Retrieved DCS instance %s: %s", d.id, instance)
        d.set("name", instance.get("name"))
        d.set("description", instance.get("description"))
        d.set("engine", instance.get("engine"))
        d.set("engine_version", instance.get("engine_version"))
        d.set("capacity", instance.get("capacity"))
        d.set("vpc_id", instance.get("vpc_id"))
        d.set("subnet_id", instance.get("subnet_id"))
        d.set("security_group_id", instance.get("security_group_id"))
        d.set("product_id", instance.get("product_id"))
        d.set("maintain_begin", instance.get("maintain_begin"))
        d.set("maintain_end", instance.get("maintain_end"))
        d.set("status", instance.get("status"))
        d.set("ip", instance.get("ip"))
        d.set("port", instance.get("port"))
        d.set("resource_spec_code", instance.get("resource_spec_code"))
        if "instance_backup_policy" in instance:
            d.set("backup_policy", _flatten_backup_policy(instance["instance_backup_policy"]))

    async def update(self, d: ResourceData) -> None:
        opts = {key: d.get(key) for key in _UPDATABLE if d.has_change(key)}
        if d.has_change("backup_policy"):
            opts["instance_backup_policy"] = _backup_policy(d) or {}
        if opts:
            logger.debug("Updating DCS instance %s: %s", d.id, sorted(opts))
            try:
                await self.client.put(SERVICE, f"{self._instances()}/{d.id}", json=opts)
            except ApiError as e:
                raise ProviderError(f"error updating DCS instance {d.id}: {e}") from e
        await self.read(d)

    async def delete(self, d: ResourceData) -> None:
        instance_id = d.id
        try:
            await self.client.delete(SERVICE, f"{self._instances()}/{instance_id}")
        except ApiError as e:
            check_deleted(d, e, "error deleting DCS instance")
            return

        await self.wait_for(
            lambda: self._refresh_instance(instance_id),
            target=(DELETED,),
            pending=(DELETING, RUNNING),
            timeout=d.timeouts.delete,
            description=f"DCS instance {instance_id}",
        )
        d.set_id("")
