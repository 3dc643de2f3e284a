"""Path sandbox: every workspace path is resolved and checked here."""

from __future__ import annotations

from pathlib import Path, PurePosixPath, PureWindowsPath

from core.errors import PathEscapeError


def validate_relative_path(path: str) -> str:
    """Validate a workspace-relative path and return its POSIX form.

    Raises:
        PathEscapeError: If the path is empty, absolute, contains a null byte
            or a ``..`` component.
    """
    if not path or not path.strip():
        raise PathEscapeError(path, "empty path")
    if "\x00" in path:
        raise PathEscapeError(path, "null byte in path")
    if path.startswith(("/", "\\", "~")) or PureWindowsPath(path).drive:
        raise PathEscapeError(path, "absolute path not allowed")

    parts = PurePosixPath(path.replace("\\", "/")).parts
    if ".." in parts:
        raise PathEscapeError(path, "path traversal not allowed")

    normalized = PurePosixPath(*[p for p in parts if p != "."]) if parts else PurePosixPath()
    if str(normalized) in ("", "."):
        raise PathEscapeError(path, "path resolves to workspace root")
    return normalized.as_posix()


def resolve_workspace_path(root: Path | str, path: str) -> Path:
    """Resolve a workspace-relative path to an absolute filesystem path.

    The result is symlink-resolved and must have ``root`` as a strict prefix.

    Args:
        root: Absolute workspace root.
        path: Relative path, POSIX separators.

    Returns:
        Resolved absolute path under ``root``.

    Raises:
        PathEscapeError: If the path is rejected or escapes ``root``.
    """
    relative = validate_relative_path(path)
    root_path = Path(root).resolve()
    full_path = (root_path / relative).resolve()

    if full_path == root_path or not full_path.is_relative_to(root_path):
        raise PathEscapeError(path)
    return full_path


def to_relative_posix(root: Path | str, absolute: Path | str) -> str:
    """Workspace-relative POSIX form of an absolute path under ``root``."""
    return Path(absolute).relative_to(Path(root)).as_posix()
