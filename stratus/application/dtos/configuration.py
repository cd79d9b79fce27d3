"""
Configuration DTOs

Architectural Intent:
- Data Transfer Objects for the declarative configuration file
- Input validation at the application boundary
- Decouples the JSON layout from the domain model

Layout:
    {"resources": {"<address>": {"type": ..., "attributes": {...},
                                 "depends_on": [...], "timeouts": {...}}},
     "data": {"<address>": {"type": ..., "attributes": {...}}}}

Data sources are addressed as ``data.<address>`` in references and
dependencies.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional
import json

from stratus.application.interpolation import find_references
from stratus.domain.errors import ValidationError
from stratus.domain.services.reconciler import PlanAction, ResourceChange

DATA_PREFIX = "data."


@dataclass(frozen=True)
class ResourceDeclaration:
    address: str
    type: str
    attributes: dict[str, Any] = field(default_factory=dict, hash=False)
    depends_on: tuple[str, ...] = ()
    timeouts: dict[str, Any] = field(default_factory=dict, hash=False)

    def __post_init__(self) -> None:
        if not self.address:
            raise ValidationError("resource address cannot be empty")
        if self.address.startswith(DATA_PREFIX):
            raise ValidationError(f"{self.address}: 'data.' is reserved for data sources")
        if not self.type:
            raise ValidationError(f"{self.address}: resource type cannot be empty")
        if not isinstance(self.attributes, dict):
            raise ValidationError(f"{self.address}: attributes must be an object")


@dataclass(frozen=True)
class DataDeclaration:
    address: str
    type: str
    attributes: dict[str, Any] = field(default_factory=dict, hash=False)
    depends_on: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if not self.address:
            raise ValidationError("data source address cannot be empty")
        if not self.type:
            raise ValidationError(f"{self.address}: data source type cannot be empty")
        if not isinstance(self.attributes, dict):
            raise ValidationError(f"{self.address}: attributes must be an object")

    @property
    def key(self) -> str:
        return DATA_PREFIX + self.address


@dataclass(frozen=True)
class Configuration:
    resources: dict[str, ResourceDeclaration] = field(default_factory=dict)
    data: dict[str, DataDeclaration] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "Configuration":
        if not isinstance(raw, dict):
            raise ValidationError("configuration must be a JSON object")
        unknown = set(raw) - {"resources", "data"}
        if unknown:
            raise ValidationError(f"unknown configuration sections: {', '.join(sorted(unknown))}")

        resources = {}
        for address, body in (raw.get("resources") or {}).items():
            if not isinstance(body, dict):
                raise ValidationError(f"{address}: resource block must be an object")
            resources[address] = ResourceDeclaration(
                address=address,
                type=body.get("type", ""),
                attributes=body.get("attributes") or {},
                depends_on=tuple(body.get("depends_on") or ()),
                timeouts=body.get("timeouts") or {},
            )

        data = {}
        for address, body in (raw.get("data") or {}).items():
            if not isinstance(body, dict):
                raise ValidationError(f"data.{address}: data block must be an object")
            data[address] = DataDeclaration(
                address=address,
                type=body.get("type", ""),
                attributes=body.get("attributes") or {},
                depends_on=tuple(body.get("depends_on") or ()),
            )

        config = cls(resources=resources, data=data)
        config.check_dependencies()
        return config

    def check_dependencies(self) -> None:
        known = set(self.resources) | {DATA_PREFIX + a for a in self.data}
        for decl in [*self.resources.values(), *self.data.values()]:
            for dep in decl.depends_on:
                if dep not in known:
                    raise ValidationError(f"{decl.address}: unknown dependency {dep!r}")

    def addresses(self) -> list[str]:
        return sorted(self.resources)

    def known(self) -> list[str]:
        """Every referenceable address, data sources included."""
        return [*self.resources, *(DATA_PREFIX + a for a in self.data)]

    def dependency_map(self) -> dict[str, list[str]]:
        """Explicit plus reference dependencies for every declaration."""
        known = self.known()
        deps: dict[str, list[str]] = {}
        for key, decl in [
            *((d.address, d) for d in self.resources.values()),
            *((d.key, d) for d in self.data.values()),
        ]:
            found = set(decl.depends_on) | find_references(decl.attributes, known)
            if key in found:
                raise ValidationError(f"{key}: a resource cannot depend on itself")
            deps[key] = sorted(found)
        return deps


def load_configuration(path: str | Path) -> Configuration:
    """Read and validate a configuration file."""
    try:
        with open(path) as f:
            raw = json.load(f)
    except FileNotFoundError as e:
        raise ValidationError(f"configuration file not found: {path}") from e
    except json.JSONDecodeError as e:
        raise ValidationError(f"invalid configuration file {path}: {e}") from e
    return Configuration.from_dict(raw)


@dataclass
class PlanResult:
    changes: list[ResourceChange] = field(default_factory=list)
    data: dict[str, dict[str, Any]] = field(default_factory=dict)

    @property
    def pending(self) -> list[ResourceChange]:
        return [c for c in self.changes if not c.is_noop]

    @property
    def has_changes(self) -> bool:
        return bool(self.pending)

    def count(self, action: PlanAction) -> int:
        return sum(1 for c in self.changes if c.action == action)

    def summary(self) -> str:
        return (
            f"{self.count(PlanAction.CREATE)} to create, "
            f"{self.count(PlanAction.UPDATE)} to update, "
            f"{self.count(PlanAction.REPLACE)} to replace, "
            f"{self.count(PlanAction.DELETE)} to delete"
        )


@dataclass
class ApplyResult:
    created: list[str] = field(default_factory=list)
    updated: list[str] = field(default_factory=list)
    replaced: list[str] = field(default_factory=list)
    deleted: list[str] = field(default_factory=list)
    unchanged: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)
    skipped: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.failed

    def summary(self) -> str:
        return (
            f"{len(self.created)} created, {len(self.updated)} updated, "
            f"{len(self.replaced)} replaced, {len(self.deleted)} deleted, "
            f"{len(self.failed)} failed"
        )


@dataclass
class RefreshResult:
    refreshed: list[str] = field(default_factory=list)
    vanished: list[str] = field(default_factory=list)
    drifted: dict[str, list[str]] = field(default_factory=dict)
    failed: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ImportRequest:
    address: str
    type: str
    resource_id: str
    timeouts: Optional[dict[str, Any]] = None

    def __post_init__(self) -> None:
        if not self.address:
            raise ValidationError("address cannot be empty")
        if not self.type:
            raise ValidationError("type cannot be empty")
        if not self.resource_id:
            raise ValidationError("resource_id cannot be empty")
