"""Tree-sitter powered parser backend."""

from __future__ import annotations

import threading
from typing import Any, Dict, Iterator, List, Optional

from .base import InvalidInputError, Parser

try:  # pragma: no cover - optional dependency
    from tree_sitter import Parser as _TSParser
    from tree_sitter_languages import get_language

    TREE_SITTER_AVAILABLE = True
except ModuleNotFoundError:  # pragma: no cover - optional dependency
    _TSParser = None  # type: ignore[assignment]
    get_language = None  # type: ignore[assignment]
    TREE_SITTER_AVAILABLE = False


_EXTENSIONS = {
    "bash": ".sh",
    "c": ".c",
    "cpp": ".cpp",
    "go": ".go",
    "java": ".java",
    "javascript": ".js",
    "lua": ".lua",
    "python": ".py",
    "ruby": ".rb",
    "rust": ".rs",
    "toml": ".toml",
    "typescript": ".ts",
}


class TreeSitterParser(Parser):
    """Parses source with a tree-sitter grammar; error nodes mean invalid input."""

    def __init__(self, language: Optional[str] = None) -> None:
        if not language:
            raise ValueError("tree-sitter parser needs a language, e.g. 'tree-sitter:javascript'")
        if not TREE_SITTER_AVAILABLE:
            raise RuntimeError(
                "tree-sitter support requires optional dependencies. "
                "Install them with `pip install fixturegen[tree-sitter]`."
            )
        self.language = language.lower()
        self.name = f"tree-sitter:{self.language}"
        self.default_extension = _EXTENSIONS.get(self.language, f".{self.language}")
        self._parser = _TSParser()
        self._parser.set_language(get_language(self.language))
        # tree-sitter parsers keep internal state between calls.
        self._lock = threading.Lock()

    def parse(self, text: str) -> Dict[str, Any]:
        source_bytes = text.encode("utf-8")
        with self._lock:
            tree = self._parser.parse(source_bytes)
        root = tree.root_node
        if root.has_error:
            raise InvalidInputError(self._describe_error(root))
        return self._node_to_data(root, source_bytes)

    def _node_to_data(self, node, source_bytes: bytes) -> Dict[str, Any]:  # type: ignore[no-untyped-def]
        data: Dict[str, Any] = {
            "type": node.type,
            "start": list(node.start_point),
            "end": list(node.end_point),
        }
        children = node.named_children
        if children:
            data["children"] = [self._node_to_data(child, source_bytes) for child in children]
        else:
            data["text"] = source_bytes[node.start_byte : node.end_byte].decode("utf-8", errors="replace")
        return data

    @staticmethod
    def _describe_error(root) -> str:  # type: ignore[no-untyped-def]
        for node in _walk(root):
            if node.type == "ERROR" or node.is_missing:
                row, column = node.start_point
                label = f"missing {node.type}" if node.is_missing else "unexpected input"
                return f"syntax error at {row + 1}:{column + 1}: {label}"
        return "syntax error"


def _walk(node) -> Iterator[Any]:  # type: ignore[no-untyped-def]
    stack: List[Any] = [node]
    while stack:
        current = stack.pop()
        yield current
        stack.extend(reversed(current.children))


__all__ = ["TreeSitterParser", "TREE_SITTER_AVAILABLE"]
