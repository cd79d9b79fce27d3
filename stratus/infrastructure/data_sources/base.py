"""Shared plumbing for read-only data sources."""

from __future__ import annotations

from stratus.domain.ports.cloud_api_port import CloudApiPort
from stratus.domain.value_objects.attribute import Schema, validate_config
from stratus.domain.value_objects.resource_data import ResourceData


class BaseDataSource:
    type_name: str = ""
    schema: Schema = {}

    def __init__(self, client: CloudApiPort):
        self.client = client

    def validate(self, d: ResourceData) -> None:
        validate_config(self.schema, d.config)

    async def read(self, d: ResourceData) -> None:
        raise NotImplementedError
