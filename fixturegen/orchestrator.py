"""Pipeline orchestration for a full generation run."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Optional, Tuple

from .config import ConfigError, GeneratorConfig, load_config
from .emitter import CodeEmitter
from .errors import GenerationError
from .logging import get_logger
from .models import GenerationResult, Parsed
from .parsers import resolve_parser
from .parsers.base import Parser
from .stores import SnapshotStore, write_text_atomic
from .walker import ResourceWalker


class Orchestrator:
    """Scans resources, classifies samples and writes the generated module.

    A run either completes and commits every artifact, or raises before
    anything is written.
    """

    def __init__(
        self,
        config: GeneratorConfig | None = None,
        parser: Parser | None = None,
        parser_spec: str | None = None,
    ) -> None:
        self.config = config
        self._parser_override = parser
        self._parser_spec = parser_spec
        self.logger = get_logger("orchestrator")

    def run(self, path: str) -> GenerationResult:
        """Load ``.fixturegen.yml`` from the project at ``path`` and generate."""
        project = Path(path).expanduser().resolve()
        if not project.exists():
            raise FileNotFoundError(f"Project path not found: {path}")
        if not project.is_dir():
            raise NotADirectoryError(f"Project path is not a directory: {path}")
        config = load_config(project)
        self.logger.debug("Loaded configuration from %s", project)
        return asyncio.run(self.agenerate(config.resources, config.output, config=config))

    def generate(self, resource_root: Path | str, output_path: Path | str) -> GenerationResult:
        """Generate the module at ``output_path`` from the samples under ``resource_root``."""
        return asyncio.run(self.agenerate(resource_root, output_path))

    async def agenerate(
        self,
        resource_root: Path | str,
        output_path: Path | str,
        *,
        config: Optional[GeneratorConfig] = None,
    ) -> GenerationResult:
        settings = config or self.config or GeneratorConfig.defaults(Path.cwd())
        resource_root = Path(resource_root).expanduser().resolve()
        output_path = Path(output_path).expanduser().resolve()
        self.logger.info("Generating %s from %s", output_path, resource_root)

        try:
            resource_root.mkdir(parents=True, exist_ok=True)
            output_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise GenerationError(f"Cannot create directories: {exc}") from exc

        parser, parser_spec = self._select_parser(settings)
        extension = settings.extension or parser.default_extension
        if not extension:
            raise ConfigError(
                f"Parser '{parser.name}' has no default sample extension; set `extension` in the configuration"
            )
        if not settings.snapshot.prefix and settings.snapshot.suffix == extension:
            raise ConfigError("Snapshot names would be indistinguishable from samples; set snapshot.prefix")
        if output_path.is_relative_to(resource_root) and output_path.name.endswith(extension):
            raise GenerationError("Generated module would be picked up as a sample", output_path)

        walker = ResourceWalker(
            parser,
            extension,
            snapshot_prefix=settings.snapshot.prefix,
            snapshot_suffix=settings.snapshot.suffix,
            max_workers=settings.max_workers,
        )
        tree = walker.scan(resource_root)
        results = await walker.process(tree)
        self.logger.debug("Classified %d samples using %s", len(results), parser.name)

        emitter = CodeEmitter(output_path, parser_spec, templates_dir=settings.templates_dir)
        emitter.preamble()
        walker.walk(tree, emitter, results)
        emitter.trailer()
        module_text = emitter.getvalue()

        store = SnapshotStore()
        for result in results.values():
            if isinstance(result.outcome, Parsed) and result.snapshot_path is not None:
                store.store(result.snapshot_path, result.snapshot_text or "")
        parsed = sum(1 for entry in emitter.entries if entry.kind == "parsed")
        if settings.snapshot.prune_stale:
            store.prune(tree.iter_snapshots())

        written, removed = await store.persist(max_workers=settings.max_workers)
        for path in removed:
            self.logger.info("Removed stale snapshot %s", path)
        module_changed = await asyncio.to_thread(write_text_atomic, output_path, module_text)
        if not module_changed:
            self.logger.debug("%s is already up to date", output_path)

        outcome = GenerationResult(
            output_path=output_path,
            module_changed=module_changed,
            parsed=parsed,
            failed=len(emitter.entries) - parsed,
            snapshots_written=written,
            snapshots_pruned=removed,
        )
        self.logger.info(
            "Generated %d tests (%d parsed, %d expected failures); %d snapshots updated",
            outcome.total,
            outcome.parsed,
            outcome.failed,
            len(written),
        )
        return outcome

    def _select_parser(self, settings: GeneratorConfig) -> Tuple[Parser, str]:
        """Return the parser for this run and the spec generated tests resolve.

        An injected parser must be reachable by name, either through
        ``parser_spec`` or its own ``name``, so the generated module re-parses
        with the same backend that produced the snapshots.
        """
        override = self._parser_override
        if override is None:
            spec = self._parser_spec or settings.parser
            return resolve_parser(spec), spec

        spec = self._parser_spec or override.name
        try:
            resolved = resolve_parser(spec)
        except ValueError as exc:
            raise ConfigError(
                f"Parser '{override.name}' cannot be resolved by name from generated tests; "
                "register it under the fixturegen.parsers entry-point group or pass parser_spec"
            ) from exc
        if type(resolved) is not type(override):
            raise ConfigError(
                f"Parser spec '{spec}' resolves to {type(resolved).__name__}, "
                f"not {type(override).__name__}"
            )
        return override, spec


__all__ = ["Orchestrator"]
