"""Assertion helpers imported by generated test modules."""

from __future__ import annotations

import difflib
import json
from typing import Any, Optional

from .parsers.base import Parser
from .snapshot import SnapshotError, canonicalize, serialize

_UNREADABLE = object()


def assert_matches_snapshot(
    parser: Parser, tree: Any, snapshot_text: str, *, label: Optional[str] = None
) -> None:
    """Assert that a fresh parse result matches its stored snapshot.

    The typed comparison runs first against ``parser.from_snapshot``. When
    the snapshot cannot be rebuilt, or the rebuilt value differs only through
    representation (float precision, tuple vs. list), the canonical text of
    both sides decides.
    """
    expected = _rebuild(parser, snapshot_text)
    if expected is not _UNREADABLE and tree == expected:
        return

    try:
        actual_text = serialize(tree)
        expected_text = canonicalize(snapshot_text)
    except SnapshotError as exc:
        raise AssertionError(f"{label or 'snapshot'}: {exc}") from exc
    if actual_text != expected_text:
        raise AssertionError(_render_diff(expected_text, actual_text, label))


def assert_parse_fails(parser: Parser, text: str, *, label: Optional[str] = None) -> None:
    """Assert that ``text`` is rejected as invalid input."""
    try:
        parser.parse(text)
    except parser.invalid_input_errors:
        return
    raise AssertionError(f"{label or 'sample'}: expected parser '{parser.name}' to reject the input")


def _rebuild(parser: Parser, snapshot_text: str) -> Any:
    try:
        return parser.from_snapshot(json.loads(snapshot_text))
    except (ValueError, TypeError, KeyError):
        return _UNREADABLE


def _render_diff(expected: str, actual: str, label: Optional[str]) -> str:
    name = label or "snapshot"
    diff = difflib.unified_diff(
        expected.splitlines(),
        actual.splitlines(),
        fromfile=f"{name} (snapshot)",
        tofile=f"{name} (parsed)",
        lineterm="",
    )
    return "Parse result does not match snapshot:\n" + "\n".join(diff)


__all__ = ["assert_matches_snapshot", "assert_parse_fails"]
