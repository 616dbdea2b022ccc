"""Parser backends and discovery utilities."""

from __future__ import annotations

from importlib import metadata
from typing import Callable, Dict, Iterable, List, Optional

from .base import InvalidInputError, Parser
from .python import PythonParser
from .tree_sitter import TREE_SITTER_AVAILABLE, TreeSitterParser

_ENTRY_POINT_GROUP = "fixturegen.parsers"

_BUILTIN_FACTORIES: Dict[str, Callable[[Optional[str]], Parser]] = {
    "python": PythonParser,
    "tree-sitter": TreeSitterParser,
}


def resolve_parser(spec: str) -> Parser:
    """Return a parser instance for ``spec``.

    ``spec`` is a registry name with an optional backend option after a
    colon, for example ``python``, ``python:3.8`` or
    ``tree-sitter:javascript``. Entry points in the ``fixturegen.parsers``
    group extend the built-in names.
    """
    name, _, option = spec.strip().partition(":")
    key = name.strip().lower().replace("_", "-")
    if not key:
        raise ValueError("Parser name must not be empty")
    option_value = option.strip() or None

    factory = _BUILTIN_FACTORIES.get(key)
    if factory is not None:
        return factory(option_value)

    for entry in _iter_entry_points():
        if entry.name.lower().replace("_", "-") != key:
            continue
        try:
            loaded = entry.load()
        except Exception as exc:  # pragma: no cover
            raise RuntimeError(f"Failed to load parser entry point '{entry.name}': {exc}") from exc
        return _coerce_parser(loaded, option_value)

    known = ", ".join(available_parsers())
    raise ValueError(f"Unknown parser '{name}'. Available parsers: {known}")


def available_parsers() -> List[str]:
    names = list(_BUILTIN_FACTORIES)
    for entry in _iter_entry_points():
        if entry.name not in names:
            names.append(entry.name)
    return sorted(names)


def _coerce_parser(obj: object, option: Optional[str]) -> Parser:
    if isinstance(obj, Parser):
        if option is not None:
            raise ValueError(f"Parser instance '{obj.name}' does not accept options")
        return obj
    if isinstance(obj, type) and issubclass(obj, Parser):
        return obj(option) if option is not None else obj()
    if callable(obj):
        instance = obj(option) if option is not None else obj()
        if isinstance(instance, Parser):
            return instance
    raise TypeError("Parser entry point must be a Parser subclass or factory")


def _iter_entry_points() -> Iterable[metadata.EntryPoint]:
    try:
        entry_points = metadata.entry_points()
    except Exception:  # pragma: no cover
        return []
    return entry_points.select(group=_ENTRY_POINT_GROUP)


__all__ = [
    "InvalidInputError",
    "Parser",
    "PythonParser",
    "TREE_SITTER_AVAILABLE",
    "TreeSitterParser",
    "available_parsers",
    "resolve_parser",
]
