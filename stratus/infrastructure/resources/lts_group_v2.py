"""Log Tank Service log group (lts_group_v2)."""

from __future__ import annotations
import logging

from stratus.domain.errors import ApiError, ProviderError
from stratus.domain.services.state_waiter import check_deleted
from stratus.domain.value_objects.attribute import Attribute, INT
from stratus.domain.value_objects.resource_data import ResourceData
from stratus.infrastructure.resources.base import BaseResource

logger = logging.getLogger(__name__)

SERVICE = "lts"


class LTSGroupV2(BaseResource):
    type_name = "lts_group_v2"
    updatable = False
    importable = True
    schema = {
        "group_name": Attribute(required=True, force_new=True),
        "ttl_in_days": Attribute(INT, computed=True),
    }

    def _groups(self) -> str:
        return f"v2.0/{self.client.project_id}/log-groups"

    async def create(self, d: ResourceData) -> None:
        body = {"log_group_name": d.get("group_name")}
        logger.debug("Creating log group: %s", body)
        try:
            created = await self.client.post(SERVICE, self._groups(), json=body)
        except ApiError as e:
            raise ProviderError(f"error creating log group: {e}") from e
        d.set_id(created["log_group_id"])
        logger.info("Created log group %s", d.id)
        await self.read(d)

    async def read(self, d: ResourceData) -> None:
        try:
            group = await self.client.get(SERVICE, f"{self._groups()}/{d.id}")
        except ApiError as e:
            check_deleted(d, e, f"error getting log group {d.id}")
            return
        logger.debug("Retrieved log group %s: %s", d.id, group)
        d.set_id(group.get("log_group_id", d.id))
        d.set("group_name", group.get("log_group_name"))
        d.set("ttl_in_days", group.get("ttl_in_days"))

    async def delete(self, d: ResourceData) -> None:
        try:
            await self.client.delete(SERVICE, f"{self._groups()}/{d.id}")
        except ApiError as e:
            check_deleted(d, e, "error deleting log group")
            return
        d.set_id("")
