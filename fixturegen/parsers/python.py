"""Parser backend built on the standard library ``ast`` module."""

from __future__ import annotations

import ast
import math
from typing import Any, Dict, Optional, Tuple

from .base import InvalidInputError, Parser


class PythonParser(Parser):
    """Parses Python source into nested dicts keyed by AST field name."""

    name = "python"
    default_extension = ".py"
    invalid_input_errors = (SyntaxError, InvalidInputError)

    def __init__(self, option: Optional[str] = None, *, include_locations: bool = True) -> None:
        self.feature_version = _parse_feature_version(option)
        self.include_locations = include_locations
        if self.feature_version is not None:
            self.name = f"python:{option}"

    def parse(self, text: str) -> Dict[str, Any]:
        try:
            if self.feature_version is None:
                module = ast.parse(text)
            else:
                module = ast.parse(text, feature_version=self.feature_version)
        except ValueError as exc:
            # Older interpreters reject NUL bytes with ValueError instead of SyntaxError.
            raise InvalidInputError(str(exc)) from exc
        return self._node_to_data(module)

    def _node_to_data(self, node: ast.AST) -> Dict[str, Any]:
        data: Dict[str, Any] = {"type": type(node).__name__}
        for name in node._fields:
            data[name] = self._value_to_data(getattr(node, name, None))
        if self.include_locations and hasattr(node, "lineno"):
            data["loc"] = {
                "start": [node.lineno, node.col_offset],
                "end": [getattr(node, "end_lineno", None), getattr(node, "end_col_offset", None)],
            }
        return data

    def _value_to_data(self, value: Any) -> Any:
        if isinstance(value, ast.AST):
            return self._node_to_data(value)
        if isinstance(value, list):
            return [self._value_to_data(item) for item in value]
        return _constant_to_data(value)


def _constant_to_data(value: Any) -> Any:
    if value is None or isinstance(value, (bool, int, str)):
        return value
    if isinstance(value, float) and math.isfinite(value):
        return value
    # bytes, complex, Ellipsis and non-finite floats have no JSON spelling.
    return {"repr": repr(value)}


def _parse_feature_version(option: Optional[str]) -> Optional[Tuple[int, int]]:
    if not option:
        return None
    major, _, minor = option.partition(".")
    try:
        version = (int(major), int(minor))
    except ValueError:
        raise ValueError(f"Invalid Python feature version '{option}', expected e.g. '3.8'") from None
    if version[0] != 3:
        raise ValueError(f"Unsupported Python feature version '{option}'")
    return version


__all__ = ["PythonParser"]
