"""
Attribute Schema Value Object

Architectural Intent:
- Minimal schema carried by every resource type: enough to validate a
  declaration and to decide whether a change needs a replacement
- Nested blocks (lists / sets of objects) carry their own element schema

Domain Logic:
- Unknown keys, missing required keys and computed-only keys in the
  declaration are rejected
- Types are checked loosely: ints are accepted where floats are expected
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Sequence

from stratus.domain.errors import ValidationError

STRING = "string"
INT = "int"
FLOAT = "float"
BOOL = "bool"
LIST = "list"
SET = "set"
MAP = "map"

class _Unknown:
    """Value that is only known once a referenced resource exists."""

    def __repr__(self) -> str:
        return "(known after apply)"


UNKNOWN = _Unknown()


_SCALAR_TYPES: dict[str, tuple[type, ...]] = {
    STRING: (str,),
    INT: (int,),
    FLOAT: (int, float),
    BOOL: (bool,),
}


@dataclass(frozen=True)
class Attribute:
    type: str = STRING
    required: bool = False
    optional: bool = False
    computed: bool = False
    force_new: bool = False
    sensitive: bool = False
    default: Any = None
    choices: Sequence[str] = ()
    case_insensitive: bool = False
    min_value: Optional[float] = None
    max_value: Optional[float] = None
    max_items: int = 0
    conflicts_with: Sequence[str] = ()
    required_with: Sequence[str] = ()
    elem: Optional[Mapping[str, "Attribute"]] = field(default=None, hash=False)

    @property
    def configurable(self) -> bool:
        return self.required or self.optional

    @property
    def is_collection(self) -> bool:
        return self.type in (LIST, SET)


Schema = Mapping[str, Attribute]


def _check_type(path: str, attr: Attribute, value: Any) -> None:
    if attr.type in _SCALAR_TYPES:
        # bool is a subclass of int
        if attr.type != BOOL and isinstance(value, bool):
            raise ValidationError(f"{path}: expected {attr.type}, got bool")
        if not isinstance(value, _SCALAR_TYPES[attr.type]):
            raise ValidationError(
                f"{path}: expected {attr.type}, got {type(value).__name__}"
            )
    elif attr.type == MAP:
        if not isinstance(value, dict):
            raise ValidationError(f"{path}: expected map, got {type(value).__name__}")
    elif attr.is_collection:
        if not isinstance(value, (list, tuple)):
            raise ValidationError(
                f"{path}: expected {attr.type}, got {type(value).__name__}"
            )
        if attr.max_items and len(value) > attr.max_items:
            raise ValidationError(
                f"{path}: at most {attr.max_items} items allowed, got {len(value)}"
            )
        for index, item in enumerate(value):
            if attr.elem is not None:
                if not isinstance(item, dict):
                    raise ValidationError(f"{path}.{index}: expected a block")
                validate_config(attr.elem, item, prefix=f"{path}.{index}.")


def _check_value(path: str, attr: Attribute, value: Any) -> None:
    if attr.choices:
        if attr.case_insensitive and isinstance(value, str):
            ok = value.lower() in {c.lower() for c in attr.choices}
        else:
            ok = value in attr.choices
        if not ok:
            raise ValidationError(
                f"{path}: expected one of [{', '.join(attr.choices)}], got {value!r}"
            )
    if attr.type in (INT, FLOAT):
        if attr.min_value is not None and value < attr.min_value:
            raise ValidationError(f"{path}: must be at least {attr.min_value:g}")
        if attr.max_value is not None and value > attr.max_value:
            raise ValidationError(f"{path}: must be at most {attr.max_value:g}")


def validate_config(schema: Schema, config: Mapping[str, Any], prefix: str = "") -> None:
    """Raise ValidationError when ``config`` does not satisfy ``schema``."""
    unknown = sorted(set(config) - set(schema))
    if unknown:
        raise ValidationError(f"unsupported argument(s): {', '.join(prefix + k for k in unknown)}")

    for name, attr in schema.items():
        path = prefix + name
        value = config.get(name)
        if value is None:
            if attr.required:
                raise ValidationError(f"{path}: required argument is missing")
            continue
        if value is UNKNOWN:
            continue
        if not attr.configurable:
            raise ValidationError(f"{path}: computed attribute cannot be set")
        _check_type(path, attr, value)
        _check_value(path, attr, value)
        for other in attr.conflicts_with:
            if config.get(other) not in (None, False, [], {}):
                raise ValidationError(f"{path}: conflicts with {prefix}{other}")
        for other in attr.required_with:
            if config.get(other) is None:
                raise ValidationError(f"{path}: {prefix}{other} must also be set")


def apply_defaults(schema: Schema, config: Mapping[str, Any]) -> dict[str, Any]:
    """Return a copy of ``config`` with schema defaults filled in."""
    result = dict(config)
    for name, attr in schema.items():
        if result.get(name) is None and attr.default is not None:
            result[name] = attr.default
    return result


def _freeze(value: Any) -> Any:
    if isinstance(value, dict):
        return tuple(sorted((k, _freeze(v)) for k, v in value.items()))
    if isinstance(value, (list, tuple)):
        return tuple(_freeze(v) for v in value)
    return value


def _project(item: Any, elem: Schema) -> Any:
    if not isinstance(item, dict):
        return item
    item = apply_defaults(elem, item)
    return {
        k: v for k, v in item.items()
        if k in elem and elem[k].configurable and v is not None
    }


def values_equal(attr: Optional[Attribute], declared: Any, stored: Any) -> bool:
    """Compare a declared value with the stored one under ``attr``'s rules.

    Computed keys of nested blocks (a rule status, say) are ignored and
    sets compare order-free.
    """
    if declared is UNKNOWN:
        return False
    if attr is None:
        return declared == stored
    if attr.is_collection and isinstance(declared, (list, tuple)):
        stored = list(stored or [])
        if attr.elem is not None:
            declared = [_project(d, attr.elem) for d in declared]
            stored = [_project(s, attr.elem) for s in stored]
        if attr.type == SET:
            return sorted(map(repr, map(_freeze, declared))) == sorted(
                map(repr, map(_freeze, stored))
            )
        return _freeze(declared) == _freeze(stored)
    if attr.case_insensitive and isinstance(declared, str) and isinstance(stored, str):
        return declared.lower() == stored.lower()
    return declared == stored
