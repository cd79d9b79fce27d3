"""
Resource Timeouts Value Object

Architectural Intent:
- Immutable per-operation deadlines (create / update / delete) in seconds
- Accepts duration strings as written in configuration files ("10m", "30s", "1h")
"""

from __future__ import annotations
import re
from dataclasses import dataclass, replace
from typing import Any, Optional, Union

DEFAULT_TIMEOUT = 600.0

_DURATION_RE = re.compile(r"(\d+(?:\.\d+)?)(ms|h|m|s)")
_UNITS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}


def parse_duration(value: Union[str, int, float]) -> float:
    """Parse "1h30m", "10m", "30s" or a bare number of seconds."""
    if isinstance(value, bool):
        raise ValueError(f"Invalid duration: {value!r}")
    if isinstance(value, (int, float)):
        if value < 0:
            raise ValueError(f"Duration cannot be negative: {value!r}")
        return float(value)

    text = value.strip()
    if not text:
        raise ValueError("Duration cannot be empty")
    try:
        return parse_duration(float(text))
    except ValueError:
        pass

    total = 0.0
    pos = 0
    for match in _DURATION_RE.finditer(text):
        if match.start() != pos:
            break
        total += float(match.group(1)) * _UNITS[match.group(2)]
        pos = match.end()
    if pos != len(text):
        raise ValueError(f"Invalid duration: {value!r}")
    return total


@dataclass(frozen=True)
class ResourceTimeouts:
    create: float = DEFAULT_TIMEOUT
    update: float = DEFAULT_TIMEOUT
    delete: float = DEFAULT_TIMEOUT

    def __post_init__(self) -> None:
        for name in ("create", "update", "delete"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} timeout must be positive")

    def with_overrides(self, overrides: Optional[dict[str, Any]]) -> "ResourceTimeouts":
        """Return a copy with the durations given in ``overrides`` applied."""
        if not overrides:
            return self
        unknown = set(overrides) - {"create", "update", "delete"}
        if unknown:
            raise ValueError(f"Unknown timeout keys: {', '.join(sorted(unknown))}")
        return replace(
            self, **{key: parse_duration(val) for key, val in overrides.items()}
        )
