"""
Identity Credentials (identity_credential_v3)

Lists the permanent AK/SK credentials of the project, or of one user when
``user_id`` is given.
"""

from __future__ import annotations
import logging

from stratus.domain.errors import ApiError, ProviderError
from stratus.domain.value_objects.attribute import Attribute, LIST
from stratus.domain.value_objects.resource_data import ResourceData
from stratus.infrastructure.data_sources.base import BaseDataSource

logger = logging.getLogger(__name__)

SERVICE = "iam"


class IdentityCredentialV3(BaseDataSource):
    type_name = "identity_credential_v3"
    schema = {
        "user_id": Attribute(optional=True),
        "credentials": Attribute(
            LIST,
            computed=True,
            elem={
                "user_id": Attribute(computed=True),
                "description": Attribute(computed=True),
                "access": Attribute(computed=True),
                "create_time": Attribute(computed=True),
                "status": Attribute(computed=True),
            },
        ),
    }

    async def read(self, d: ResourceData) -> None:
        user_id = d.get("user_id") or ""
        params = {"user_id": user_id} if user_id else None
        try:
            body = await self.client.get(
                SERVICE, "v3.0/OS-CREDENTIAL/credentials", params=params
            )
        except ApiError as e:
            raise ProviderError(f"error retrieving AK/SK information: {e}") from e

        credentials = [
            {
                "user_id": item.get("user_id"),
                "description": item.get("description"),
                "access": item.get("access"),
                "create_time": item.get("create_time"),
                "status": item.get("status"),
            }
            for item in body.get("credentials") or []
        ]
        logger.debug("Found %d credentials", len(credentials))
        d.set("credentials", credentials)
        d.set_id(user_id or self.client.project_id)
