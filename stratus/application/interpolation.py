"""
Reference Interpolation

String values of the form ``${<address>.<attribute>}`` refer to attributes of
other resources (or ``${data.<address>.<attribute>}`` for data sources).
Nested values are reached with dotted paths, list items by index:
``${sfs_rules.nfs.access_rule.0.share_access_id}``.

A string that is exactly one reference takes the referenced value as-is
(lists and numbers keep their type); references embedded in longer strings
are substituted as text.
"""

from __future__ import annotations
import re
from typing import Any, Iterable, Mapping

from stratus.domain.errors import ValidationError
from stratus.domain.value_objects.attribute import UNKNOWN

_REF_RE = re.compile(r"\$\{([^}]+)\}")


def _split(ref: str, known: Iterable[str]) -> tuple[str, str]:
    best = ""
    for address in known:
        if ref.startswith(address + ".") and len(address) > len(best):
            best = address
    if not best:
        raise ValidationError(f"reference to undeclared resource: ${{{ref}}}")
    return best, ref[len(best) + 1:]


def _walk(value: Any):
    if isinstance(value, str):
        yield value
    elif isinstance(value, dict):
        for item in value.values():
            yield from _walk(item)
    elif isinstance(value, (list, tuple)):
        for item in value:
            yield from _walk(item)


def find_references(value: Any, known: Iterable[str]) -> set[str]:
    """Addresses referenced anywhere inside ``value``."""
    known = list(known)
    found = set()
    for text in _walk(value):
        for ref in _REF_RE.findall(text):
            found.add(_split(ref.strip(), known)[0])
    return found


def _lookup(attributes: Any, path: str) -> Any:
    current = attributes
    for part in path.split("."):
        if isinstance(current, Mapping):
            if part not in current:
                return UNKNOWN
            current = current[part]
        elif isinstance(current, (list, tuple)) and part.isdigit():
            index = int(part)
            if index >= len(current):
                return UNKNOWN
            current = current[index]
        else:
            return UNKNOWN
    return UNKNOWN if current is None else current


def resolve(
    value: Any,
    values: Mapping[str, Mapping[str, Any]],
    known: Iterable[str],
) -> Any:
    """Replace references with attribute values; unknown ones become UNKNOWN."""
    known = list(known)

    def resolve_ref(ref: str) -> Any:
        address, path = _split(ref.strip(), known)
        if address not in values:
            return UNKNOWN
        return _lookup(values[address], path)

    def visit(item: Any) -> Any:
        if isinstance(item, str):
            whole = _REF_RE.fullmatch(item)
            if whole:
                return resolve_ref(whole.group(1))
            parts = []
            pos = 0
            for match in _REF_RE.finditer(item):
                resolved = resolve_ref(match.group(1))
                if resolved is UNKNOWN:
                    return UNKNOWN
                parts.append(item[pos:match.start()])
                parts.append(str(resolved))
                pos = match.end()
            parts.append(item[pos:])
            return "".join(parts)
        if isinstance(item, dict):
            return {k: visit(v) for k, v in item.items()}
        if isinstance(item, (list, tuple)):
            return [visit(v) for v in item]
        return item

    return visit(value)


def contains_unknown(value: Any) -> bool:
    if value is UNKNOWN:
        return True
    if isinstance(value, dict):
        return any(contains_unknown(v) for v in value.values())
    if isinstance(value, (list, tuple)):
        return any(contains_unknown(v) for v in value)
    return False
