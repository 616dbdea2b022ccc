"""Persistence helpers for generated artifacts."""

from .snapshots import SnapshotStore, write_text_atomic

__all__ = ["SnapshotStore", "write_text_atomic"]
