"""Canonical JSON snapshots of parsed trees."""

from __future__ import annotations

import json
import math
from dataclasses import fields, is_dataclass
from enum import Enum
from typing import Any, Dict, List, Mapping, Set

DEFAULT_PREFIX = "ast."
DEFAULT_SUFFIX = ".json"


class SnapshotError(ValueError):
    """Raised when a parsed tree cannot be represented as a snapshot."""


def serialize(tree: Any) -> str:
    """Return the canonical snapshot text for ``tree``.

    Mappings keep their insertion order and dataclasses their declared field
    order; sets are sorted by the canonical text of their members. The same
    tree value always yields byte-identical output.
    """
    data = to_snapshot_data(tree)
    return _dump(data)


def canonicalize(text: str) -> str:
    """Re-serialize stored snapshot text into canonical form."""
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise SnapshotError(f"Snapshot is not valid JSON: {exc}") from exc
    return _dump(to_snapshot_data(data))


def to_snapshot_data(value: Any) -> Any:
    """Normalize ``value`` into JSON-native lists, dicts and scalars."""
    return _normalise(value, "$", set())


def snapshot_filename(
    basename: str, prefix: str = DEFAULT_PREFIX, suffix: str = DEFAULT_SUFFIX
) -> str:
    return f"{prefix}{basename}{suffix}"


def is_snapshot_filename(
    name: str, prefix: str = DEFAULT_PREFIX, suffix: str = DEFAULT_SUFFIX
) -> bool:
    return (
        name.startswith(prefix)
        and name.endswith(suffix)
        and len(name) > len(prefix) + len(suffix)
    )


def _dump(data: Any) -> str:
    try:
        text = json.dumps(data, indent=2, ensure_ascii=False, allow_nan=False)
    except ValueError as exc:
        raise SnapshotError(str(exc)) from exc
    return text + "\n"


def _normalise(value: Any, path: str, active: Set[int]) -> Any:
    if value is None or isinstance(value, (bool, str)):
        return value
    if isinstance(value, Enum):
        return _normalise(value.value, path, active)
    if isinstance(value, int):
        return int(value)
    if isinstance(value, float):
        if not math.isfinite(value):
            raise SnapshotError(f"Non-finite number at {path}: {value!r}")
        return float(value)

    marker = id(value)
    if marker in active:
        raise SnapshotError(f"Cyclic reference at {path}")
    active.add(marker)
    try:
        return _normalise_container(value, path, active)
    finally:
        active.discard(marker)


def _normalise_container(value: Any, path: str, active: Set[int]) -> Any:
    to_snapshot = getattr(value, "to_snapshot", None)
    if callable(to_snapshot) and not isinstance(value, type):
        return _normalise(to_snapshot(), path, active)
    if is_dataclass(value) and not isinstance(value, type):
        return {
            item.name: _normalise(getattr(value, item.name), f"{path}.{item.name}", active)
            for item in fields(value)
        }
    if isinstance(value, Mapping):
        return _normalise_mapping(value, path, active)
    if isinstance(value, (list, tuple)):
        return [
            _normalise(item, f"{path}[{index}]", active)
            for index, item in enumerate(value)
        ]
    if isinstance(value, (set, frozenset)):
        members = [_normalise(item, f"{path}{{}}", active) for item in value]
        return sorted(members, key=_sort_key)
    raise SnapshotError(f"Unsupported value at {path}: {type(value).__name__}")


def _normalise_mapping(value: Mapping[Any, Any], path: str, active: Set[int]) -> Dict[str, Any]:
    result: Dict[str, Any] = {}
    for key, item in value.items():
        name = _key_text(key, path)
        if name in result:
            raise SnapshotError(f"Duplicate key {name!r} at {path}")
        result[name] = _normalise(item, f"{path}.{name}", active)
    return result


def _key_text(key: Any, path: str) -> str:
    if isinstance(key, str):
        return key
    if isinstance(key, Enum):
        return _key_text(key.value, path)
    if key is None or isinstance(key, (bool, int, float)):
        # Same spelling json.dumps uses for non-string keys.
        return json.dumps(key)
    raise SnapshotError(f"Unsupported mapping key at {path}: {type(key).__name__}")


def _sort_key(member: Any) -> str:
    return json.dumps(member, ensure_ascii=False, separators=(",", ":"))


__all__: List[str] = [
    "DEFAULT_PREFIX",
    "DEFAULT_SUFFIX",
    "SnapshotError",
    "canonicalize",
    "is_snapshot_filename",
    "serialize",
    "snapshot_filename",
    "to_snapshot_data",
]
