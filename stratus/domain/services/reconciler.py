"""
Reconciler Service

Architectural Intent:
- Domain service deciding what has to happen to one resource
- Pure function of the declared configuration and the stored attributes,
  so plans can be computed without touching the cloud

Domain Logic:
- Only keys present in the declaration (after schema defaults) are compared
- Computed nested keys are ignored and set attributes compare order-free
- A change to a force-new key, or any change on a resource type without
  update support, means the resource is replaced
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Mapping, Optional

from stratus.domain.value_objects.attribute import Schema, apply_defaults, values_equal


class PlanAction(Enum):
    NO_OP = auto()
    CREATE = auto()
    UPDATE = auto()
    REPLACE = auto()
    DELETE = auto()


_SYMBOLS = {
    PlanAction.NO_OP: " ",
    PlanAction.CREATE: "+",
    PlanAction.UPDATE: "~",
    PlanAction.REPLACE: "-/+",
    PlanAction.DELETE: "-",
}


@dataclass(frozen=True)
class ResourceChange:
    address: str
    type: str
    action: PlanAction
    changed: tuple[str, ...] = ()
    force_new: tuple[str, ...] = ()
    before: dict[str, Any] = field(default_factory=dict, hash=False)
    after: dict[str, Any] = field(default_factory=dict, hash=False)

    @property
    def is_noop(self) -> bool:
        return self.action == PlanAction.NO_OP

    @property
    def symbol(self) -> str:
        return _SYMBOLS[self.action]

    def describe(self) -> str:
        line = f"{self.symbol} {self.address}"
        if self.changed:
            line += f" ({', '.join(self.changed)})"
        return line


def diff_attributes(
    schema: Schema, config: Mapping[str, Any], prior: Mapping[str, Any]
) -> list[str]:
    """Keys whose declared value differs from the stored one."""
    declared = apply_defaults(schema, {k: v for k, v in config.items() if v is not None})
    return sorted(
        key for key, value in declared.items()
        if not values_equal(schema.get(key), value, prior.get(key))
    )


def plan_change(
    schema: Schema,
    config: Optional[Mapping[str, Any]],
    prior: Optional[Mapping[str, Any]],
    updatable: bool = True,
    address: str = "",
    type_name: str = "",
) -> ResourceChange:
    """Decide the action that brings the stored resource to its declaration."""
    exists = bool(prior and prior.get("id"))

    if config is None:
        if not exists:
            return ResourceChange(address, type_name, PlanAction.NO_OP)
        return ResourceChange(address, type_name, PlanAction.DELETE, before=dict(prior))

    if not exists:
        return ResourceChange(
            address,
            type_name,
            PlanAction.CREATE,
            changed=tuple(sorted(k for k, v in config.items() if v is not None)),
            after=dict(config),
        )

    changed = diff_attributes(schema, config, prior)
    if not changed:
        return ResourceChange(address, type_name, PlanAction.NO_OP, before=dict(prior))

    force_new = tuple(k for k in changed if k in schema and schema[k].force_new)
    action = PlanAction.REPLACE if force_new or not updatable else PlanAction.UPDATE
    return ResourceChange(
        address,
        type_name,
        action,
        changed=tuple(changed),
        force_new=force_new,
        before=dict(prior),
        after=dict(config),
    )
