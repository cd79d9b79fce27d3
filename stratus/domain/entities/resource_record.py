"""
Resource Record Entity

Architectural Intent:
- What the state store keeps about one managed resource
- Identity is the address from the configuration file, not the cloud id,
  so a replaced resource keeps its record
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, UTC
from typing import Any


@dataclass
class ResourceRecord:
    address: str
    type: str
    id: str
    attributes: dict[str, Any] = field(default_factory=dict)
    depends_on: list[str] = field(default_factory=list)
    updated_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def __post_init__(self) -> None:
        if not self.address:
            raise ValueError("Resource address cannot be empty")
        if not self.type:
            raise ValueError("Resource type cannot be empty")

    @property
    def name(self) -> str:
        return self.address.split(".", 1)[-1]

    def to_dict(self) -> dict[str, Any]:
        return {
            "address": self.address,
            "type": self.type,
            "id": self.id,
            "attributes": self.attributes,
            "depends_on": list(self.depends_on),
            "updated_at": self.updated_at.isoformat(),
        }
