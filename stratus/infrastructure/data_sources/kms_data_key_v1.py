"""
KMS Data Key (kms_data_key_v1)

Generates a fresh data key under a customer master key. Every read yields a
new key, so the id is the UTC time of generation.
"""

from __future__ import annotations
import json
import logging
from datetime import datetime, UTC

from stratus.domain.errors import ApiError, ProviderError, ValidationError
from stratus.domain.value_objects.attribute import Attribute
from stratus.domain.value_objects.resource_data import ResourceData
from stratus.infrastructure.data_sources.base import BaseDataSource

logger = logging.getLogger(__name__)

SERVICE = "kms"


class KMSDataKeyV1(BaseDataSource):
    type_name = "kms_data_key_v1"
    schema = {
        "key_id": Attribute(required=True, force_new=True),
        "encryption_context": Attribute(optional=True, force_new=True),
        "datakey_length": Attribute(required=True, force_new=True),
        "plain_text": Attribute(computed=True, sensitive=True),
        "cipher_text": Attribute(computed=True),
    }

    async def read(self, d: ResourceData) -> None:
        key_id = d.get("key_id")
        body = {"key_id": key_id, "datakey_length": d.get("datakey_length")}
        context, ok = d.get_ok("encryption_context")
        if ok:
            try:
                body["encryption_context"] = json.loads(context)
            except json.JSONDecodeError as e:
                raise ValidationError(f"encryption_context must be a JSON object: {e}") from e

        logger.debug("KMS get data key for key: %s", key_id)
        try:
            result = await self.client.post(
                SERVICE, f"v1.0/{self.client.project_id}/kms/create-datakey", json=body
            )
        except ApiError as e:
            raise ProviderError(f"error creating data key with key {key_id}: {e}") from e

        d.set_id(datetime.now(UTC).isoformat())
        d.set("plain_text", result.get("plain_text"))
        d.set("cipher_text", result.get("cipher_text"))
