"""Renders the generated pytest module from templates."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Set, Tuple

from jinja2 import Environment, FileSystemLoader, StrictUndefined

from .errors import GenerationError
from .models import ParseOutcome, Parsed, TestEntry

_IDENTIFIER_INVALID = re.compile(r"[^a-z0-9_]")
_DEFAULT_TEMPLATES = Path(__file__).with_name("templates")


def sanitize_identifier(name: str) -> str:
    """Lowercase ``name`` and replace every non ``[a-z0-9_]`` character with ``_``."""
    return _IDENTIFIER_INVALID.sub("_", name.lower()) or "_"


def scope_identifier(directory_name: str) -> str:
    """Return the test class name for a resource directory."""
    cleaned = sanitize_identifier(directory_name)
    return "Test" + cleaned[:1].upper() + cleaned[1:]


def entry_identifier(basename: str) -> str:
    """Return the test function name for a sample base name."""
    return "test_" + sanitize_identifier(basename)


@dataclass
class _Scope:
    path: Tuple[str, ...]
    items: int = 0
    names: Set[str] = field(default_factory=set)

    def claim(self, identifier: str) -> str:
        candidate = identifier
        counter = 2
        while candidate in self.names:
            candidate = f"{identifier}_{counter}"
            counter += 1
        self.names.add(candidate)
        return candidate


class CodeEmitter:
    """Appends scopes and test definitions to an in-memory module buffer.

    Scopes must be opened and closed in traversal order; the emitter checks
    that every ``emit`` call targets the innermost open scope.
    """

    INDENT = "    "

    def __init__(
        self,
        output_path: Path,
        parser_spec: str,
        *,
        templates_dir: Path | None = None,
    ) -> None:
        self.output_dir = output_path.resolve().parent
        self.parser_spec = parser_spec
        self.entries: List[TestEntry] = []
        self._env = _create_env(templates_dir)
        self._chunks: List[str] = []
        self._scopes: List[_Scope] = [_Scope(path=())]
        self._started = False
        self._finished = False

    def preamble(self) -> None:
        if self._started:
            raise GenerationError("Preamble already written")
        self._started = True
        self._chunks.append(self._render("preamble.py.j2", parser=self.parser_spec))

    def open_scope(self, nesting_path: Tuple[str, ...]) -> None:
        parent = self._current(nesting_path[:-1])
        class_name = parent.claim(scope_identifier(nesting_path[-1]))
        self._separate(parent)
        rendered = self._render("scope.py.j2", name=class_name, directory=nesting_path[-1])
        self._write(rendered, depth=len(parent.path))
        parent.items += 1
        self._scopes.append(_Scope(path=tuple(nesting_path)))

    def close_scope(self, nesting_path: Tuple[str, ...]) -> None:
        scope = self._current(nesting_path)
        if not scope.path:
            raise GenerationError("Cannot close the module scope")
        if scope.items == 0:
            self._write("pass\n", depth=len(scope.path))
        self._scopes.pop()

    def emit(
        self,
        nesting_path: Tuple[str, ...],
        basename: str,
        outcome: ParseOutcome,
        *,
        script: Path,
        snapshot: Optional[Path] = None,
    ) -> TestEntry:
        """Append one test definition for a sample at the current depth."""
        scope = self._current(nesting_path)
        name = scope.claim(entry_identifier(basename))
        script_ref = self._relative(script)
        if isinstance(outcome, Parsed):
            if snapshot is None:
                raise GenerationError("Parsed sample has no snapshot", script)
            entry = TestEntry(
                name=name,
                nesting_path=tuple(nesting_path),
                kind="parsed",
                script=script_ref,
                snapshot=self._relative(snapshot),
            )
        else:
            entry = TestEntry(
                name=name,
                nesting_path=tuple(nesting_path),
                kind="failed",
                script=script_ref,
            )

        self._separate(scope)
        rendered = self._render(
            f"test_{entry.kind}.py.j2",
            name=entry.name,
            method=bool(nesting_path),
            script=entry.script,
            snapshot=entry.snapshot,
        )
        self._write(rendered, depth=len(nesting_path))
        scope.items += 1
        self.entries.append(entry)
        return entry

    def trailer(self) -> None:
        if len(self._scopes) != 1:
            open_path = "/".join(self._scopes[-1].path)
            raise GenerationError(f"Scope '{open_path}' was never closed")
        if self._finished:
            raise GenerationError("Trailer already written")
        self._finished = True
        self._chunks.append("\n\n")
        self._chunks.append(self._render("trailer.py.j2"))

    def getvalue(self) -> str:
        if not (self._started and self._finished):
            raise GenerationError("Module is incomplete: preamble or trailer missing")
        return "".join(self._chunks)

    # ------------------------------------------------------------------
    # Internal helpers

    def _current(self, nesting_path: Tuple[str, ...]) -> _Scope:
        scope = self._scopes[-1]
        if scope.path != tuple(nesting_path):
            raise GenerationError(
                f"Emission out of order: expected scope '{'/'.join(scope.path)}', "
                f"got '{'/'.join(nesting_path)}'"
            )
        return scope

    def _separate(self, scope: _Scope) -> None:
        if not scope.path:
            self._chunks.append("\n\n")
        elif scope.items:
            self._chunks.append("\n")

    def _write(self, text: str, *, depth: int) -> None:
        prefix = self.INDENT * depth
        lines = text.splitlines()
        self._chunks.append(
            "".join(f"{prefix}{line}\n" if line.strip() else "\n" for line in lines)
        )

    def _relative(self, path: Path) -> str:
        try:
            relative = os.path.relpath(path.resolve(), self.output_dir)
        except ValueError as exc:
            raise GenerationError(f"Cannot reference sample from {self.output_dir}: {exc}", path) from exc
        return Path(relative).as_posix()

    def _render(self, template_name: str, **context: object) -> str:
        return self._env.get_template(template_name).render(**context)


def _create_env(templates_dir: Path | None) -> Environment:
    directories: List[str] = []
    if templates_dir:
        directories.append(str(templates_dir))
    directories.append(str(_DEFAULT_TEMPLATES))
    env = Environment(
        loader=FileSystemLoader(directories),
        autoescape=False,
        keep_trailing_newline=True,
        trim_blocks=True,
        lstrip_blocks=True,
        undefined=StrictUndefined,
    )
    filters: Dict[str, object] = {"pyrepr": repr}
    env.filters.update(filters)
    return env


__all__ = ["CodeEmitter", "entry_identifier", "sanitize_identifier", "scope_identifier"]
