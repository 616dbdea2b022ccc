"""Core data models shared across fixturegen components."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple, Union


@dataclass(frozen=True)
class Sample:
    """One resource file supplying source text for one generated test."""

    path: Path
    relative_path: str
    basename: str
    text: str


@dataclass(frozen=True)
class Parsed:
    """The parser accepted the sample and produced ``tree``."""

    tree: Any


@dataclass(frozen=True)
class Failed:
    """The parser rejected the sample as invalid input."""

    diagnostic: str


ParseOutcome = Union[Parsed, Failed]


@dataclass
class ResourceDir:
    """Directory level of the resource tree, with children in traversal order."""

    path: Path
    name: str
    relative_path: str
    subdirs: Dict[str, "ResourceDir"] = field(default_factory=dict)
    samples: List[Path] = field(default_factory=list)
    snapshots: List[Path] = field(default_factory=list)

    def iter_samples(self) -> Iterator[Path]:
        """Yield every sample below this directory in emission order."""
        for subdir in self.subdirs.values():
            yield from subdir.iter_samples()
        yield from self.samples

    def iter_snapshots(self) -> Iterator[Path]:
        for subdir in self.subdirs.values():
            yield from subdir.iter_snapshots()
        yield from self.snapshots


@dataclass(frozen=True)
class SampleResult:
    """Classification of a sample plus its pending snapshot, if any."""

    sample: Sample
    outcome: ParseOutcome
    snapshot_path: Optional[Path] = None
    snapshot_text: Optional[str] = None


@dataclass(frozen=True)
class TestEntry:
    """A single generated test bound to one sample."""

    __test__ = False

    name: str
    nesting_path: Tuple[str, ...]
    kind: str
    script: str
    snapshot: Optional[str] = None


@dataclass
class GenerationResult:
    """Summary of a completed generation run."""

    output_path: Path
    module_changed: bool
    parsed: int = 0
    failed: int = 0
    snapshots_written: List[Path] = field(default_factory=list)
    snapshots_pruned: List[Path] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.parsed + self.failed
