"""Snapshot builder: serialise a workspace into one model-consumable document.

The walk is depth-first with excluded and gitignored directories pruned
before descending. Every surviving file becomes a record; records are
sorted by POSIX path so the document is reproducible for a fixed
filesystem state.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path, PurePosixPath

import pathspec

from config.schema import SnapshotConfig
from core.errors import BudgetExceededError, PathEscapeError, WalkError
from core.filesystem.paths import resolve_workspace_path, to_relative_posix
from core.protocol.grammar import format_record

logger = logging.getLogger(__name__)

GITIGNORE = ".gitignore"

OMIT_SIZE = "size"
OMIT_GITIGNORE = "gitignore"
OMIT_BINARY = "binary"
OMIT_READ_ERROR = "read_error"

# Workspace metadata never reaches the model, whatever the exclude list says.
ALWAYS_EXCLUDED = [".sigrid/"]


@dataclass(frozen=True)
class SnapshotRecord:
    """A file in the snapshot: inlined content, or a placeholder reason."""

    path: str
    content: str | None = None
    size: int = 0
    omitted: str | None = None
    detail: str | None = None

    @property
    def is_placeholder(self) -> bool:
        return self.omitted is not None


@dataclass
class SnapshotStats:
    files: int = 0
    placeholders: int = 0
    body_bytes: int = 0


class _GitignoreChain:
    """Gitignore specs from the root down to the current directory."""

    def __init__(self, specs: tuple[tuple[str, pathspec.PathSpec], ...] = ()):
        self.specs = specs

    def extend(self, base: str, directory: Path) -> _GitignoreChain:
        gitignore = directory / GITIGNORE
        if not gitignore.is_file():
            return self
        try:
            lines = gitignore.read_text(encoding="utf-8", errors="replace").splitlines()
        except OSError as e:
            logger.warning("Could not read %s: %s", gitignore, e)
            return self
        spec = pathspec.GitIgnoreSpec.from_lines(lines)
        return _GitignoreChain(self.specs + ((base, spec),))

    def ignores(self, rel_path: str, is_dir: bool = False) -> bool:
        """Deepest .gitignore with a matching pattern decides, as in git."""
        for base, spec in reversed(self.specs):
            local = rel_path if not base else str(PurePosixPath(rel_path).relative_to(base))
            result = spec.check_file(local + "/" if is_dir else local)
            if result.include is not None:
                return result.include
        return False


def _placeholder_comment(record: SnapshotRecord) -> str:
    comment = "// File contents excluded from context"
    if record.omitted == OMIT_SIZE:
        return f"{comment} (exceeds max size: {record.size} bytes)"
    if record.omitted == OMIT_GITIGNORE:
        return f"{comment} (excluded by .gitignore)"
    if record.omitted == OMIT_BINARY:
        return f"{comment} (binary file)"
    return f"{comment} ({record.detail or 'unreadable'})"


def _read_record(root: Path, rel_path: str, max_file_size: int) -> SnapshotRecord | None:
    try:
        absolute = resolve_workspace_path(root, rel_path)
    except PathEscapeError:
        logger.debug("Skipping %s: resolves outside the workspace", rel_path)
        return None

    try:
        size = absolute.stat().st_size
        if size > max_file_size:
            return SnapshotRecord(path=rel_path, size=size, omitted=OMIT_SIZE)
        data = absolute.read_bytes()
    except OSError as e:
        return SnapshotRecord(path=rel_path, omitted=OMIT_READ_ERROR, detail=e.strerror or str(e))

    try:
        content = data.decode("utf-8")
    except UnicodeDecodeError:
        return SnapshotRecord(path=rel_path, size=len(data), omitted=OMIT_BINARY)
    if "\x00" in content:
        return SnapshotRecord(path=rel_path, size=len(data), omitted=OMIT_BINARY)
    return SnapshotRecord(path=rel_path, content=content, size=len(data))


def collect_files(root: Path | str, config: SnapshotConfig | None = None) -> list[SnapshotRecord]:
    """Walk ``root`` and return the sorted snapshot records.

    Raises:
        WalkError: If a directory cannot be listed.
    """
    config = config or SnapshotConfig()
    root = Path(root).resolve()
    exclude = pathspec.GitIgnoreSpec.from_lines([*ALWAYS_EXCLUDED, *config.exclude])
    include = pathspec.GitIgnoreSpec.from_lines(config.include) if config.include else None
    extensions = set(config.extensions) if config.extensions is not None else None

    chains: dict[str, _GitignoreChain] = {}
    records: list[SnapshotRecord] = []

    def on_error(error: OSError) -> None:
        raise WalkError(f"Failed to walk {error.filename}: {error.strerror}") from error

    for dirpath, dirnames, filenames in os.walk(root, onerror=on_error):
        current = Path(dirpath)
        base = "" if current == root else to_relative_posix(root, current)
        parent_key = PurePosixPath(base).parent.as_posix() if "/" in base else ""
        parent = chains.get(parent_key, _GitignoreChain()) if base else _GitignoreChain()
        chain = parent.extend(base, current) if config.respect_gitignore else parent
        chains[base] = chain

        kept = []
        for name in sorted(dirnames):
            rel_dir = f"{base}/{name}" if base else name
            if exclude.match_file(rel_dir + "/") or chain.ignores(rel_dir, is_dir=True):
                continue
            kept.append(name)
        dirnames[:] = kept

        for name in filenames:
            rel_path = f"{base}/{name}" if base else name
            if exclude.match_file(rel_path):
                continue
            if include is not None and not include.match_file(rel_path):
                continue
            if extensions is not None and PurePosixPath(name).suffix not in extensions:
                continue
            if '"' in rel_path:
                logger.warning("Skipping %s: path cannot be framed in a snapshot", rel_path)
                continue
            if chain.ignores(rel_path):
                records.append(SnapshotRecord(path=rel_path, omitted=OMIT_GITIGNORE))
                continue

            record = _read_record(root, rel_path, config.max_file_size)
            if record is not None:
                records.append(record)

    records.sort(key=lambda r: r.path)
    return records


def format_snapshot(records: list[SnapshotRecord], include_placeholders: bool = True) -> str:
    """Frame records with the <sg-file> grammar, one block per file."""
    blocks = []
    for record in records:
        if record.is_placeholder:
            if include_placeholders:
                blocks.append(format_record(record.path, _placeholder_comment(record), omitted=record.omitted))
            continue
        blocks.append(format_record(record.path, record.content or ""))
    return "\n\n".join(blocks)


def snapshot_stats(records: list[SnapshotRecord]) -> SnapshotStats:
    stats = SnapshotStats()
    for record in records:
        if record.is_placeholder:
            stats.placeholders += 1
        else:
            stats.files += 1
            stats.body_bytes += record.size
    return stats


def create_snapshot(root: Path | str, config: SnapshotConfig | None = None) -> str:
    """Build the snapshot document for ``root``.

    Raises:
        WalkError: On I/O failure during the walk.
        BudgetExceededError: If ``max_total_bytes`` is set and exceeded.
    """
    config = config or SnapshotConfig()
    records = collect_files(root, config)
    stats = snapshot_stats(records)

    if config.max_total_bytes is not None and stats.body_bytes > config.max_total_bytes:
        raise BudgetExceededError(stats.body_bytes, config.max_total_bytes)

    logger.info(
        "Snapshot of %s: %d files, %d placeholders, %d bytes",
        root,
        stats.files,
        stats.placeholders,
        stats.body_bytes,
    )
    return format_snapshot(records, include_placeholders=config.include_placeholders)
