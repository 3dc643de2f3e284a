"""Final deserialiser: apply the <sg-file> records of a complete response.

Records are applied in source order through the path sandbox. A record
that cannot be parsed, escapes the workspace or fails to write is
collected as a RecordError and the rest of the batch continues.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path

from core.errors import ErrorKind, PathEscapeError, RecordError
from core.filesystem.backend import FileSystemBackend
from core.filesystem.local_backend import LocalBackend
from core.filesystem.paths import resolve_workspace_path
from core.protocol.grammar import (
    FileAction,
    decode_html_entities,
    iter_records,
    trim_body,
)

logger = logging.getLogger(__name__)


@dataclass
class FileWrite:
    """One file mutation requested by the model."""

    path: str
    action: FileAction
    body: str = ""
    summary: str | None = None


@dataclass
class WrittenFile:
    path: str
    size: int


@dataclass
class ApplyResult:
    written: list[WrittenFile] = field(default_factory=list)
    deleted: list[str] = field(default_factory=list)
    errors: list[RecordError] = field(default_factory=list)
    cancelled: bool = False

    @property
    def parse_error_count(self) -> int:
        return sum(1 for e in self.errors if e.kind is ErrorKind.PARSE_ERROR)


def parse_file_writes(content: str, *, decode_entities: bool = False) -> tuple[list[FileWrite], list[RecordError]]:
    """Extract FileWrites from a full response, in source order."""
    writes: list[FileWrite] = []
    errors: list[RecordError] = []

    for record in iter_records(content):
        if record.tag is None:
            errors.append(RecordError(ErrorKind.PARSE_ERROR, record.raw_path, record.error or "Unparseable record"))
            continue
        if record.tag.omitted is not None:
            errors.append(
                RecordError(ErrorKind.PARSE_ERROR, record.tag.path, "Snapshot placeholder records cannot be applied")
            )
            continue

        body = trim_body(record.body or "")
        if decode_entities:
            body = decode_html_entities(body)
        writes.append(FileWrite(path=record.tag.path, action=record.tag.action, body=body, summary=record.tag.summary))

    for error in errors:
        logger.warning("Rejected record %s: %s", error.path, error.message)
    return writes, errors


async def apply_file_writes(
    root: Path | str,
    content: str,
    *,
    backend: FileSystemBackend | None = None,
    decode_entities: bool = False,
    cancel_event: asyncio.Event | None = None,
) -> ApplyResult:
    """Parse ``content`` and apply every record to the workspace at ``root``.

    Duplicate paths: the last record wins, and ``written`` lists each path
    once, at the position of its final write. A cancellation observed
    between records stops the batch; files already written remain.
    """
    backend = backend or LocalBackend()
    writes, errors = parse_file_writes(content, decode_entities=decode_entities)
    result = ApplyResult(errors=list(errors))
    written: dict[str, WrittenFile] = {}

    for write in writes:
        if cancel_event is not None and cancel_event.is_set():
            logger.info("Cancellation observed after %d of %d records", len(written), len(writes))
            result.cancelled = True
            break

        try:
            target = resolve_workspace_path(root, write.path)
        except PathEscapeError as e:
            logger.warning("Rejected record %s: %s", write.path, e)
            result.errors.append(RecordError(ErrorKind.PATH_ESCAPE, write.path, str(e)))
            continue

        if write.action is FileAction.DELETE:
            outcome = await asyncio.to_thread(backend.delete_file, str(target))
            if not outcome.success:
                logger.warning("Delete of %s failed: %s", write.path, outcome.error)
                result.errors.append(RecordError(ErrorKind.WRITE_FAILURE, write.path, outcome.error or "delete failed"))
                continue
            written.pop(write.path, None)
            if outcome.existed:
                result.deleted.append(write.path)
            continue

        outcome = await asyncio.to_thread(backend.write_file, str(target), write.body)
        if not outcome.success:
            logger.warning("Write of %s failed: %s", write.path, outcome.error)
            result.errors.append(RecordError(ErrorKind.WRITE_FAILURE, write.path, outcome.error or "write failed"))
            continue
        if write.path in result.deleted:
            result.deleted.remove(write.path)
        written.pop(write.path, None)
        written[write.path] = WrittenFile(path=write.path, size=outcome.size)
        logger.debug("Wrote %s (%d bytes)%s", write.path, outcome.size, f": {write.summary}" if write.summary else "")

    result.written = list(written.values())
    return result
