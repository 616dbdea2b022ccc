"""Staged, atomic persistence for snapshot files."""

from __future__ import annotations

import asyncio
import contextlib
import os
import stat
import tempfile
from pathlib import Path
from typing import Dict, Iterable, List, Set, Tuple

from ..errors import GenerationError

_DEFAULT_MODE = 0o644


class SnapshotStore:
    """Collects snapshot writes during a run and applies them at the end.

    Nothing touches the filesystem until ``persist`` is awaited, so a run
    that aborts halfway leaves the previous snapshots in place.
    """

    def __init__(self) -> None:
        self._writes: Dict[Path, str] = {}
        self._removals: Set[Path] = set()

    def store(self, path: Path, text: str) -> None:
        if path in self._writes:
            raise GenerationError("Snapshot staged twice", path)
        self._writes[path] = text
        self._removals.discard(path)

    def prune(self, existing: Iterable[Path]) -> None:
        """Schedule removal of existing snapshots that this run did not produce."""
        for path in existing:
            if path not in self._writes:
                self._removals.add(path)

    @property
    def pending(self) -> List[Path]:
        return sorted(self._writes)

    async def persist(self, *, max_workers: int = 8) -> Tuple[List[Path], List[Path]]:
        """Write staged snapshots and delete pruned ones.

        Returns the paths whose content changed and the paths removed.
        """
        semaphore = asyncio.Semaphore(max_workers)

        async def _write(path: Path, text: str) -> bool:
            async with semaphore:
                return await asyncio.to_thread(write_text_atomic, path, text)

        items = sorted(self._writes.items())
        changed = await asyncio.gather(*(_write(path, text) for path, text in items))
        written = [path for (path, _), flag in zip(items, changed) if flag]

        removed: List[Path] = []
        for path in sorted(self._removals):
            try:
                path.unlink()
            except FileNotFoundError:
                continue
            except OSError as exc:
                raise GenerationError(f"Cannot remove stale snapshot: {exc}", path) from exc
            removed.append(path)

        self._writes.clear()
        self._removals.clear()
        return written, removed


def write_text_atomic(path: Path, text: str) -> bool:
    """Replace ``path`` with ``text`` via a temporary sibling file.

    Returns False without touching the file when its bytes already match.
    """
    payload = text.encode("utf-8")
    try:
        if path.read_bytes() == payload:
            return False
        mode = stat.S_IMODE(path.stat().st_mode)
    except FileNotFoundError:
        mode = _DEFAULT_MODE
    except OSError as exc:
        raise GenerationError(f"Cannot read existing file: {exc}", path) from exc

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    except OSError as exc:
        raise GenerationError(f"Cannot create temporary file: {exc}", path) from exc

    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(payload)
        os.chmod(tmp_name, mode)
        os.replace(tmp_name, path)
    except OSError as exc:
        with contextlib.suppress(FileNotFoundError):
            os.unlink(tmp_name)
        raise GenerationError(f"Cannot write file: {exc}", path) from exc
    return True
