"""Sandboxed filesystem access for workspaces."""

from core.filesystem.archive import clear_directory, create_archive, extract_archive
from core.filesystem.backend import FileDeleteResult, FileSystemBackend, FileWriteResult
from core.filesystem.local_backend import LocalBackend
from core.filesystem.paths import resolve_workspace_path, validate_relative_path

__all__ = [
    "FileDeleteResult",
    "FileSystemBackend",
    "FileWriteResult",
    "LocalBackend",
    "clear_directory",
    "create_archive",
    "extract_archive",
    "resolve_workspace_path",
    "validate_relative_path",
]
