"""
Resource Data

Architectural Intent:
- The handle every resource adapter works on during one operation
- Combines the declared configuration, the previously stored attributes and
  the values the adapter sets while talking to the cloud
- Produces the attribute map written back to the state store

Domain Logic:
- Lookups prefer values set during the operation, then the declaration,
  then the stored attributes, then the schema default
- An empty id means the resource does not exist (never created, or gone)
"""

from __future__ import annotations
import copy
from typing import Any, Mapping, Optional

from stratus.domain.value_objects.attribute import Schema, apply_defaults, values_equal
from stratus.domain.value_objects.timeouts import ResourceTimeouts


class ResourceData:
    def __init__(
        self,
        type_name: str,
        schema: Schema,
        config: Optional[Mapping[str, Any]] = None,
        state: Optional[Mapping[str, Any]] = None,
        resource_id: str = "",
        timeouts: Optional[ResourceTimeouts] = None,
    ):
        self.type_name = type_name
        self.schema = schema
        self._config: dict[str, Any] = dict(config or {})
        self._state: dict[str, Any] = copy.deepcopy(dict(state or {}))
        self._state.pop("id", None)
        self._set: dict[str, Any] = {}
        self._id = resource_id or ""
        self.timeouts = timeouts or ResourceTimeouts()

    @property
    def id(self) -> str:
        return self._id

    def set_id(self, resource_id: Optional[str]) -> None:
        self._id = resource_id or ""

    @property
    def exists(self) -> bool:
        return bool(self._id)

    @property
    def config(self) -> dict[str, Any]:
        return dict(self._config)

    @property
    def prior(self) -> dict[str, Any]:
        return dict(self._state)

    def get(self, key: str, default: Any = None) -> Any:
        if key in self._set:
            return self._set[key]
        if self._config.get(key) is not None:
            return self._config[key]
        if self._state.get(key) is not None:
            return self._state[key]
        attr = self.schema.get(key)
        if attr is not None and attr.default is not None:
            return attr.default
        return default

    def get_ok(self, key: str) -> tuple[Any, bool]:
        """Return the value and whether it is set to something non-empty."""
        value = self.get(key)
        return value, value not in (None, "", 0, False, [], {})

    def get_change(self, key: str) -> tuple[Any, Any]:
        """Return (stored, declared) for ``key``."""
        old = self._state.get(key)
        if key in self._config:
            new = self._config[key]
        else:
            new = old
        attr = self.schema.get(key)
        if new is None and attr is not None and attr.default is not None:
            new = attr.default
        return old, new

    def has_change(self, key: str) -> bool:
        old, new = self.get_change(key)
        if new is None and old is None:
            return False
        if new is None:
            attr = self.schema.get(key)
            # computed attributes keep their stored value when not declared
            return not (attr is not None and attr.computed)
        return not values_equal(self.schema.get(key), new, old)

    def has_changes(self, *keys: str) -> bool:
        return any(self.has_change(key) for key in keys)

    def set(self, key: str, value: Any) -> None:
        self._set[key] = value

    def to_state(self) -> dict[str, Any]:
        """Attribute map to persist after the operation, including the id."""
        state = dict(self._state)
        state.update({k: v for k, v in self._config.items() if v is not None})
        state.update(self._set)
        state = apply_defaults(self.schema, state)
        state["id"] = self._id
        return state

    def __repr__(self) -> str:
        return f"ResourceData({self.type_name!r}, id={self._id!r})"
