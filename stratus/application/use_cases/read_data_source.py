"""
Read Data Source Use Case

One-off read of a data source outside any configuration, for the CLI.
"""

from __future__ import annotations
from typing import Any, Mapping, Optional

from stratus.application.dtos.configuration import DataDeclaration
from stratus.application.use_cases.plan import read_data_source
from stratus.domain.ports.resource_port import ProviderPort


class ReadDataSource:
    def __init__(self, provider: ProviderPort):
        self.provider = provider

    async def execute(
        self, type_name: str, attributes: Optional[Mapping[str, Any]] = None
    ) -> dict[str, Any]:
        decl = DataDeclaration(address="adhoc", type=type_name, attributes=dict(attributes or {}))
        return await read_data_source(self.provider, decl, decl.attributes)
