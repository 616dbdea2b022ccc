"""Resource tree scanning and traversal."""

from __future__ import annotations

import asyncio
import fnmatch
import os
from pathlib import Path
from typing import TYPE_CHECKING, Dict, Tuple

from .classifier import classify
from .errors import GenerationError
from .logging import get_logger
from .models import Parsed, ResourceDir, Sample, SampleResult
from .parsers.base import Parser
from .snapshot import (
    DEFAULT_PREFIX,
    DEFAULT_SUFFIX,
    SnapshotError,
    is_snapshot_filename,
    serialize,
    snapshot_filename,
)

if TYPE_CHECKING:  # pragma: no cover - typing aid
    from .emitter import CodeEmitter

_EXCLUDED_DIRS = {
    "__pycache__",
    "node_modules",
}

# pytest collects or imports files with these names on its own.
_PYTEST_COLLECTED = ("test_*.py", "*_test.py", "conftest.py")


class ResourceWalker:
    """Enumerates a resource root and folds it into emitted test scopes."""

    def __init__(
        self,
        parser: Parser,
        extension: str,
        *,
        snapshot_prefix: str = DEFAULT_PREFIX,
        snapshot_suffix: str = DEFAULT_SUFFIX,
        max_workers: int = 8,
    ) -> None:
        if not extension.startswith(".") or len(extension) < 2:
            raise ValueError(f"Sample extension must look like '.ext', got {extension!r}")
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self.parser = parser
        self.extension = extension
        self.snapshot_prefix = snapshot_prefix
        self.snapshot_suffix = snapshot_suffix
        self.max_workers = max_workers
        self.logger = get_logger("walker")

    def scan(self, root: Path) -> ResourceDir:
        """Return the resource tree below ``root`` in lexical order."""
        root_path = root.resolve()
        if not root_path.is_dir():
            raise GenerationError("Resource root is not a directory", root_path)
        return self._scan_dir(root_path, "")

    async def process(self, tree: ResourceDir) -> Dict[Path, SampleResult]:
        """Read, classify and serialize every sample below ``tree``.

        Samples are independent, so the work fans out to worker threads. The
        returned mapping is keyed by sample path; callers emit from it in
        traversal order.
        """
        semaphore = asyncio.Semaphore(self.max_workers)

        async def _run(path: Path) -> SampleResult:
            async with semaphore:
                return await asyncio.to_thread(self.process_sample, tree.path, path)

        paths = list(tree.iter_samples())
        results = await asyncio.gather(*(_run(path) for path in paths))
        return dict(zip(paths, results))

    def process_sample(self, root: Path, path: Path) -> SampleResult:
        relative = path.relative_to(root).as_posix()
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise GenerationError(f"Cannot read sample: {exc}", path) from exc

        sample = Sample(
            path=path,
            relative_path=relative,
            basename=path.name[: -len(self.extension)],
            text=text,
        )
        try:
            outcome = classify(self.parser, text)
        except Exception as exc:
            raise GenerationError(
                f"Parser '{self.parser.name}' failed unexpectedly: {exc!r}", path
            ) from exc

        if not isinstance(outcome, Parsed):
            self.logger.debug("%s: invalid input (%s)", relative, outcome.diagnostic)
            return SampleResult(sample=sample, outcome=outcome)

        try:
            snapshot_text = serialize(outcome.tree)
        except SnapshotError as exc:
            raise GenerationError(f"Cannot serialize parse result: {exc}", path) from exc
        snapshot_path = path.with_name(
            snapshot_filename(sample.basename, self.snapshot_prefix, self.snapshot_suffix)
        )
        self.logger.debug("%s: parsed", relative)
        return SampleResult(
            sample=sample,
            outcome=outcome,
            snapshot_path=snapshot_path,
            snapshot_text=snapshot_text,
        )

    def walk(
        self,
        directory: ResourceDir,
        emitter: "CodeEmitter",
        results: Dict[Path, SampleResult],
        nesting_path: Tuple[str, ...] = (),
    ) -> None:
        """Emit scopes and tests for ``directory``, subdirectories first."""
        for name, subdir in directory.subdirs.items():
            scope_path = nesting_path + (name,)
            emitter.open_scope(scope_path)
            self.walk(subdir, emitter, results, scope_path)
            emitter.close_scope(scope_path)

        for path in directory.samples:
            result = results[path]
            emitter.emit(
                nesting_path,
                result.sample.basename,
                result.outcome,
                script=path,
                snapshot=result.snapshot_path,
            )

    def _scan_dir(self, directory: Path, relative: str) -> ResourceDir:
        node = ResourceDir(
            path=directory,
            name=directory.name if relative else "",
            relative_path=relative,
        )
        try:
            with os.scandir(directory) as iterator:
                entries = sorted(iterator, key=lambda entry: entry.name)
        except OSError as exc:
            raise GenerationError(f"Cannot list directory: {exc}", directory) from exc

        for entry in entries:
            name = entry.name
            if name.startswith(".") or name in _EXCLUDED_DIRS:
                continue
            child_relative = f"{relative}/{name}" if relative else name
            if entry.is_dir(follow_symlinks=False):
                node.subdirs[name] = self._scan_dir(Path(entry.path), child_relative)
            elif entry.is_symlink() and entry.is_dir():
                self.logger.debug("Skipping symlinked directory %s", child_relative)
            elif entry.is_file():
                if is_snapshot_filename(name, self.snapshot_prefix, self.snapshot_suffix):
                    node.snapshots.append(Path(entry.path))
                elif name.endswith(self.extension) and len(name) > len(self.extension):
                    node.samples.append(Path(entry.path))
                    if any(fnmatch.fnmatchcase(name, pattern) for pattern in _PYTEST_COLLECTED):
                        self.logger.debug(
                            "%s matches a pytest collection pattern and may be imported by pytest",
                            child_relative,
                        )
        return node


__all__ = ["ResourceWalker"]
