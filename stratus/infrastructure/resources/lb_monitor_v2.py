"""
Load Balancer Health Monitor (lb_monitor_v2)

Domain Logic:
- The parent load balancer is found through the pool (directly, or through
  the pool's listener) and must be ACTIVE before and after every change
- Create, update and delete calls are retried while the API answers 409/5xx
"""

from __future__ import annotations
import logging
from typing import Any

from stratus.domain.errors import ApiError, ProviderError
from stratus.domain.services.state_waiter import check_deleted
from stratus.domain.value_objects.attribute import Attribute, BOOL, INT
from stratus.domain.value_objects.resource_data import ResourceData
from stratus.infrastructure.resources.base import BaseResource

logger = logging.getLogger(__name__)

SERVICE = "vpc"
LBAAS = "v2.0/lbaas"

LB_PENDING = ("PENDING_CREATE", "PENDING_UPDATE")
LB_ACTIVE = "ACTIVE"

_UPDATABLE = (
    "name",
    "delay",
    "timeout",
    "max_retries",
    "url_path",
    "http_method",
    "expected_codes",
    "admin_state_up",
    "monitor_port",
)


class LBMonitorV2(BaseResource):
    type_name = "lb_monitor_v2"
    poll_delay = 0.0
    poll_min_timeout = 1.0
    schema = {
        "region": Attribute(optional=True, computed=True, force_new=True),
        "pool_id": Attribute(required=True, force_new=True),
        "name": Attribute(optional=True),
        "tenant_id": Attribute(optional=True, computed=True, force_new=True),
        "type": Attribute(
            required=True, force_new=True, choices=("TCP", "UDP_CONNECT", "HTTP")
        ),
        "delay": Attribute(INT, required=True),
        "timeout": Attribute(INT, required=True),
        "max_retries": Attribute(INT, required=True),
        "url_path": Attribute(optional=True, computed=True),
        "http_method": Attribute(
            optional=True,
            computed=True,
            choices=(
                "GET", "HEAD", "POST", "PUT", "DELETE",
                "TRACE", "OPTIONS", "CONNECT", "PATCH",
            ),
        ),
        "expected_codes": Attribute(optional=True, computed=True),
        "admin_state_up": Attribute(BOOL, optional=True, default=True),
        "monitor_port": Attribute(
            INT, optional=True, computed=True, min_value=1, max_value=65535
        ),
    }

    async def _load_balancer_id(self, pool_id: str) -> str:
        body = await self.client.get(SERVICE, f"{LBAAS}/pools/{pool_id}")
        pool = body["pool"]
        for lb in pool.get("loadbalancers") or []:
            return lb["id"]
        for listener_ref in pool.get("listeners") or []:
            body = await self.client.get(SERVICE, f"{LBAAS}/listeners/{listener_ref['id']}")
            for lb in body["listener"].get("loadbalancers") or []:
                return lb["id"]
        raise ProviderError(f"no Load Balancer on pool {pool_id}")

    async def wait_for_load_balancer(self, pool_id: str, timeout: float) -> Any:
        """Wait until the load balancer owning ``pool_id`` is ACTIVE."""
        lb_id = await self._load_balancer_id(pool_id)
        logger.debug("Waiting for load balancer %s to become %s", lb_id, LB_ACTIVE)

        async def refresh():
            body = await self.client.get(SERVICE, f"{LBAAS}/loadbalancers/{lb_id}")
            lb = body["loadbalancer"]
            return lb, lb.get("provisioning_status", "")

        return await self.wait_for(
            refresh,
            target=(LB_ACTIVE,),
            pending=LB_PENDING,
            timeout=timeout,
            description=f"load balancer {lb_id}",
        )

    def _create_body(self, d: ResourceData) -> dict[str, Any]:
        body: dict[str, Any] = {
            "pool_id": d.get("pool_id"),
            "type": d.get("type"),
            "delay": d.get("delay"),
            "timeout": d.get("timeout"),
            "max_retries": d.get("max_retries"),
            "admin_state_up": d.get("admin_state_up"),
        }
        for key in ("tenant_id", "url_path", "http_method", "expected_codes", "name", "monitor_port"):
            value, ok = d.get_ok(key)
            if ok:
                body[key] = value
        return body

    async def create(self, d: ResourceData) -> None:
        pool_id = d.get("pool_id")
        timeout = d.timeouts.create
        await self.wait_for_load_balancer(pool_id, timeout)

        body = self._create_body(d)
        logger.debug("Creating monitor on pool %s: %s", pool_id, body)

        async def call():
            return await self.client.post(
                SERVICE, f"{LBAAS}/healthmonitors", json={"healthmonitor": body}
            )

        try:
            created = await self.retry(call, timeout, "monitor create")
        except ApiError as e:
            raise ProviderError(f"unable to create monitor: {e}") from e

        await self.wait_for_load_balancer(pool_id, timeout)
        d.set_id(created["healthmonitor"]["id"])
        logger.info("Created monitor %s", d.id)
        await self.read(d)

    async def read(self, d: ResourceData) -> None:
        try:
            body = await self.client.get(SERVICE, f"{LBAAS}/healthmonitors/{d.id}")
        except ApiError as e:
            check_deleted(d, e, "monitor")
            return
        monitor = body["healthmonitor"]
        d.set("tenant_id", monitor.get("tenant_id"))
        d.set("type", monitor.get("type"))
        d.set("delay", monitor.get("delay"))
        d.set("timeout", monitor.get("timeout"))
        d.set("max_retries", monitor.get("max_retries"))
        d.set("url_path", monitor.get("url_path"))
        d.set("http_method", monitor.get("http_method"))
        d.set("expected_codes", monitor.get("expected_codes"))
        d.set("admin_state_up", monitor.get("admin_state_up"))
        d.set("name", monitor.get("name"))
        d.set("monitor_port", monitor.get("monitor_port"))
        d.set("region", self.region(d))

    async def update(self, d: ResourceData) -> None:
        opts = {key: d.get(key) for key in _UPDATABLE if d.has_change(key)}
        timeout = d.timeouts.update
        pool_id = d.get("pool_id")
        logger.debug("Updating monitor %s with %s", d.id, opts)

        await self.wait_for_load_balancer(pool_id, timeout)

        async def call():
            return await self.client.put(
                SERVICE, f"{LBAAS}/healthmonitors/{d.id}", json={"healthmonitor": opts}
            )

        try:
            await self.retry(call, timeout, "monitor update")
        except ApiError as e:
            raise ProviderError(f"unable to update monitor {d.id}: {e}") from e

        await self.wait_for_load_balancer(pool_id, timeout)
        await self.read(d)

    async def delete(self, d: ResourceData) -> None:
        timeout = d.timeouts.delete
        pool_id = d.get("pool_id")
        logger.debug("Deleting monitor %s", d.id)

        await self.wait_for_load_balancer(pool_id, timeout)

        async def call():
            return await self.client.delete(SERVICE, f"{LBAAS}/healthmonitors/{d.id}")

        try:
            await self.retry(call, timeout, "monitor delete")
        except ApiError as e:
            raise ProviderError(f"unable to delete monitor {d.id}: {e}") from e

        await self.wait_for_load_balancer(pool_id, timeout)
        d.set_id("")
