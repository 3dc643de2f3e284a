"""Gzipped tar pack/unpack for workspaces.

Extraction goes through the path sandbox member by member: only regular
files and directories are materialised, links and device nodes are
skipped, and no member can land outside the workspace root.
"""

from __future__ import annotations

import io
import logging
import os
import shutil
import tarfile
from pathlib import Path, PurePosixPath
from typing import BinaryIO

from core.errors import ExtractError, PathEscapeError
from core.filesystem.paths import resolve_workspace_path, to_relative_posix

logger = logging.getLogger(__name__)


def _strip_components(name: str, strip: int) -> str | None:
    parts = [p for p in PurePosixPath(name).parts if p not in ("", ".")]
    if len(parts) <= strip:
        return None
    return PurePosixPath(*parts[strip:]).as_posix()


def extract_archive(fileobj: BinaryIO, root: Path, *, strip: int = 0) -> list[str]:
    """Extract a gzipped tar stream into ``root``.

    Args:
        fileobj: Readable binary stream with tar.gz content
        root: Existing workspace root directory
        strip: Number of leading path components to drop from each member

    Returns:
        Relative paths of the regular files extracted

    Raises:
        ExtractError: If the archive is unreadable or a member escapes root
    """
    if strip < 0:
        raise ValueError("strip must be >= 0")

    extracted: list[str] = []
    try:
        with tarfile.open(fileobj=fileobj, mode="r:gz") as tar:
            for member in tar:
                relative = _strip_components(member.name, strip)
                if relative is None:
                    continue
                if not (member.isfile() or member.isdir()):
                    logger.debug("Skipping non-regular archive member %s", member.name)
                    continue

                target = resolve_workspace_path(root, relative)
                if member.isdir():
                    target.mkdir(parents=True, exist_ok=True)
                    continue

                source = tar.extractfile(member)
                if source is None:
                    continue
                target.parent.mkdir(parents=True, exist_ok=True)
                with source, open(target, "wb") as out:
                    shutil.copyfileobj(source, out)
                extracted.append(relative)
    except PathEscapeError as e:
        raise ExtractError(f"Archive member escapes workspace: {e}") from e
    except (tarfile.TarError, OSError, EOFError) as e:
        raise ExtractError(f"Failed to extract archive: {e}") from e

    logger.debug("Extracted %d files into %s", len(extracted), root)
    return extracted


def _portable(info: tarfile.TarInfo) -> tarfile.TarInfo:
    info.uid = 0
    info.gid = 0
    info.uname = ""
    info.gname = ""
    return info


def create_archive(root: Path) -> bytes:
    """Pack ``root`` into a portable gzipped tar.

    Member names are relative to ``root`` and ordered by path; ownership
    metadata is cleared. Symlinks are not followed.
    """
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w:gz") as tar:
        for dirpath, dirnames, filenames in os.walk(root):
            dirnames.sort()
            current = Path(dirpath)
            for name in dirnames:
                path = current / name
                if path.is_symlink():
                    continue
                tar.add(path, arcname=to_relative_posix(root, path), recursive=False, filter=_portable)
            for name in sorted(filenames):
                path = current / name
                if path.is_symlink() or not path.is_file():
                    continue
                tar.add(path, arcname=to_relative_posix(root, path), recursive=False, filter=_portable)
    return buffer.getvalue()


def clear_directory(root: Path) -> None:
    """Best-effort removal of everything under ``root`` (root itself stays)."""
    for child in root.iterdir():
        try:
            if child.is_dir() and not child.is_symlink():
                shutil.rmtree(child)
            else:
                child.unlink()
        except OSError as e:
            logger.warning("Cleanup could not remove %s: %s", child, e)
