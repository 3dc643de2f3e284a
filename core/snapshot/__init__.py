"""Workspace snapshot builder."""

from core.snapshot.builder import (
    SnapshotRecord,
    SnapshotStats,
    collect_files,
    create_snapshot,
    format_snapshot,
)

__all__ = ["SnapshotRecord", "SnapshotStats", "collect_files", "create_snapshot", "format_snapshot"]
