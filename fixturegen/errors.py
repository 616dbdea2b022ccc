"""Exceptions shared across the generation pipeline."""

from __future__ import annotations

from pathlib import Path


class GenerationError(RuntimeError):
    """Raised for any fault that must abort a generation run.

    Invalid samples are never reported through this error; they become
    ``Failed`` outcomes instead.
    """

    def __init__(self, message: str, path: Path | None = None) -> None:
        if path is not None:
            message = f"{path}: {message}"
        super().__init__(message)
        self.path = path


__all__ = ["GenerationError"]
