"""
File Share Access Rules (sfs_share_access_rules_v2)

Domain Logic:
- The resource id is the share id; all rules of the share are managed
  together
- New rules are only usable once every rule reports "active"
- An update revokes every stored rule and grants the declared list again
"""

from __future__ import annotations
import logging
from typing import Any

from stratus.domain.errors import ApiError, NotFoundError, ProviderError
from stratus.domain.value_objects.attribute import Attribute, LIST
from stratus.domain.value_objects.resource_data import ResourceData
from stratus.infrastructure.resources.base import BaseResource

logger = logging.getLogger(__name__)

SERVICE = "sfs"

RULE_ACTIVE = "active"
RULE_ERROR = "error"
RULE_PENDING = ("new", "queued_to_apply", "applying")


def _summary_state(rules: list[dict[str, Any]]) -> str:
    states = [rule.get("state", "") for rule in rules]
    if RULE_ERROR in states:
        return RULE_ERROR
    for state in states:
        if state != RULE_ACTIVE:
            return state
    return RULE_ACTIVE


class SFSShareAccessRulesV2(BaseResource):
    type_name = "sfs_share_access_rules_v2"
    importable = True
    schema = {
        "share_id": Attribute(required=True, force_new=True),
        "access_rule": Attribute(
            LIST,
            required=True,
            max_items=20,
            elem={
                "access_level": Attribute(required=True),
                "access_type": Attribute(optional=True, default="cert"),
                "access_to": Attribute(required=True),
                "access_rule_status": Attribute(computed=True),
                "share_access_id": Attribute(computed=True),
            },
        ),
    }

    def _action(self, share_id: str) -> str:
        return f"v2/{self.client.project_id}/shares/{share_id}/action"

    async def _list_rules(self, share_id: str) -> list[dict[str, Any]]:
        body = await self.client.post(
            SERVICE, self._action(share_id), json={"os-access_list": None}
        )
        return body.get("access_list") or []

    async def _grant(self, share_id: str, rule: dict[str, Any]) -> None:
        grant = {
            "access_level": rule["access_level"],
            "access_type": rule.get("access_type") or "cert",
            "access_to": rule["access_to"],
        }
        try:
            await self.client.post(
                SERVICE, self._action(share_id), json={"os-allow_access": grant}
            )
        except ApiError as e:
            raise ProviderError(f"error applying access rule for file share: {e}") from e

    async def _revoke(self, share_id: str, rule: dict[str, Any]) -> None:
        access_id = rule.get("share_access_id")
        if not access_id:
            return
        try:
            await self.client.post(
                SERVICE,
                self._action(share_id),
                json={"os-deny_access": {"access_id": access_id}},
            )
        except NotFoundError:
            logger.debug("Access rule %s already gone", access_id)
        except ApiError as e:
            raise ProviderError(f"error deleting access rule for file share: {e}") from e

    async def _wait_for_rules(self, share_id: str, timeout: float) -> None:
        async def refresh():
            rules = await self._list_rules(share_id)
            return rules, _summary_state(rules)

        await self.wait_for(
            refresh,
            target=(RULE_ACTIVE,),
            pending=RULE_PENDING,
            timeout=timeout,
            description=f"access rules of share {share_id}",
        )

    async def create(self, d: ResourceData) -> None:
        share_id = d.get("share_id")
        for rule in d.get("access_rule") or []:
            await self._grant(share_id, rule)
        d.set_id(share_id)
        await self._wait_for_rules(share_id, d.timeouts.create)
        await self.read(d)

    async def read(self, d: ResourceData) -> None:
        try:
            rules = await self._list_rules(d.id)
        except NotFoundError:
            d.set_id("")
            return
        except ApiError as e:
            raise ProviderError(f"error retrieving rules of file share: {e}") from e
        d.set(
            "access_rule",
            [
                {
                    "access_level": rule.get("access_level"),
                    "access_to": rule.get("access_to"),
                    "access_type": rule.get("access_type"),
                    "access_rule_status": rule.get("state"),
                    "share_access_id": rule.get("id"),
                }
                for rule in rules
            ],
        )
        d.set("share_id", d.id)

    async def update(self, d: ResourceData) -> None:
        if d.has_change("access_rule"):
            old, new = d.get_change("access_rule")
            for rule in old or []:
                await self._revoke(d.id, rule)
            for rule in new or []:
                await self._grant(d.id, rule)
            await self._wait_for_rules(d.id, d.timeouts.update)
        await self.read(d)

    async def delete(self, d: ResourceData) -> None:
        for rule in d.prior.get("access_rule") or d.get("access_rule") or []:
            await self._revoke(d.id, rule)
        d.set_id("")
