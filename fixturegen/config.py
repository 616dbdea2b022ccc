"""Configuration loading for fixturegen (.fixturegen.yml)."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .snapshot import DEFAULT_PREFIX, DEFAULT_SUFFIX

CONFIG_FILENAME = ".fixturegen.yml"

DEFAULT_RESOURCES = Path("tests") / "resources"
DEFAULT_OUTPUT = Path("tests") / "test_parser_auto.py"
DEFAULT_PARSER = "python"
DEFAULT_MAX_WORKERS = 8


class ConfigError(RuntimeError):
    """Raised when the configuration file cannot be parsed."""


@dataclass
class SnapshotConfig:
    """Naming and housekeeping rules for snapshot files."""

    prefix: str = DEFAULT_PREFIX
    suffix: str = DEFAULT_SUFFIX
    prune_stale: bool = True


@dataclass
class GeneratorConfig:
    """Represents the settings defined in .fixturegen.yml."""

    root: Path
    resources: Path
    output: Path
    parser: str = DEFAULT_PARSER
    extension: Optional[str] = None
    max_workers: int = DEFAULT_MAX_WORKERS
    templates_dir: Optional[Path] = None
    snapshot: SnapshotConfig = field(default_factory=SnapshotConfig)

    @classmethod
    def defaults(cls, root: Path) -> "GeneratorConfig":
        root = root.resolve()
        return cls(root=root, resources=root / DEFAULT_RESOURCES, output=root / DEFAULT_OUTPUT)


def load_config(config_path: Path) -> GeneratorConfig:
    """Load configuration from disk, falling back to defaults when absent."""
    config_file = _resolve_config_path(config_path)
    root = config_file.parent.resolve()

    if not config_file.exists():
        return GeneratorConfig.defaults(root)

    data = _read_config(config_file)
    if not isinstance(data, dict):
        raise ConfigError(f"{CONFIG_FILENAME} must contain a mapping at the root")

    config = GeneratorConfig.defaults(root)

    resources = _as_str(data.get("resources"))
    if resources:
        config.resources = (root / resources).resolve()
    output = _as_str(data.get("output"))
    if output:
        config.output = (root / output).resolve()
    templates_dir = _as_str(data.get("templates_dir"))
    if templates_dir:
        config.templates_dir = (root / templates_dir).resolve()

    parser = _as_str(data.get("parser"))
    if parser:
        config.parser = parser

    extension = _as_str(data.get("extension"))
    if extension:
        config.extension = extension if extension.startswith(".") else f".{extension}"

    if "max_workers" in data:
        max_workers = _as_int(data.get("max_workers"))
        if max_workers is None or max_workers < 1:
            raise ConfigError("max_workers must be a positive integer")
        config.max_workers = max_workers

    snapshot_data = _as_dict(data.get("snapshot"))
    if snapshot_data:
        prefix = snapshot_data.get("prefix")
        if prefix is not None:
            config.snapshot.prefix = str(prefix)
        suffix = snapshot_data.get("suffix")
        if suffix is not None:
            config.snapshot.suffix = str(suffix)
        prune = _as_bool(snapshot_data.get("prune_stale"))
        if prune is not None:
            config.snapshot.prune_stale = prune

    if not config.snapshot.suffix:
        raise ConfigError("snapshot.suffix must not be empty")

    return config


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILENAME).resolve()
    if config_path.name != CONFIG_FILENAME:
        return (config_path.parent / CONFIG_FILENAME).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Dict[str, Any]:
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    return loaded or {}


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> Optional[str]:
    return str(value) if isinstance(value, (str, int, float)) and not isinstance(value, bool) else None


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return None
    return None


def _as_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "yes", "1"}:
            return True
        if lowered in {"false", "no", "0"}:
            return False
    return None


__all__ = ["CONFIG_FILENAME", "ConfigError", "GeneratorConfig", "SnapshotConfig", "load_config"]
