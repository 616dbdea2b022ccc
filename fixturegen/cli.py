"""CLI entrypoint for fixturegen."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from .config import ConfigError
from .errors import GenerationError
from .logging import configure_logging
from .orchestrator import Orchestrator


def _add_verbose_option(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        default=False,
        help="Increase log verbosity for troubleshooting.",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="fixturegen",
        description="Generate parser snapshot tests from a directory of sample scripts.",
    )
    _add_verbose_option(parser)
    parser.add_argument(
        "path",
        nargs="?",
        default=".",
        help="Project root holding .fixturegen.yml (defaults to current directory).",
    )
    parser.add_argument(
        "--log-file",
        type=Path,
        default=None,
        help="Append a timestamped copy of the log to this file.",
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    """Run one full generation pass."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(verbose=bool(args.verbose), log_file=args.log_file)

    orchestrator = Orchestrator()
    try:
        result = orchestrator.run(args.path)
    except (FileNotFoundError, NotADirectoryError) as exc:
        parser.exit(1, f"{exc}\n")
    except ConfigError as exc:
        parser.exit(1, f"fixturegen: invalid configuration: {exc}\n")
    except (GenerationError, RuntimeError, ValueError) as exc:
        parser.exit(1, f"fixturegen failed: {exc}\nRun with --verbose for more details.\n")

    rel_path = _relativize(result.output_path)
    status = "written" if result.module_changed else "unchanged"
    print(
        f"{rel_path} {status}: {result.total} tests "
        f"({result.parsed} parsed, {result.failed} expected failures)"
    )


def _relativize(path: Path) -> str:
    try:
        return str(path.relative_to(Path.cwd()))
    except ValueError:
        return str(path)


if __name__ == "__main__":
    main(sys.argv[1:])
