"""Workspace façade.

A workspace is a directory that a model edits through static-context
turns. It is seeded at most once from a tar.gz archive, snapshotted into
the model's context on every turn, and can be exported back to an archive.
"""

from __future__ import annotations

import asyncio
import io
import logging
import secrets
import shutil
import tempfile
from dataclasses import replace
from pathlib import Path
from typing import Any, BinaryIO

from config.loader import load_settings
from config.schema import SigridSettings, SnapshotConfig
from core.errors import AlreadyPopulatedError, WorkspaceError, WorkspaceNotFoundError
from core.filesystem.archive import clear_directory, create_archive, extract_archive
from core.filesystem.backend import FileSystemBackend
from core.llm.transport import ChatTransport, build_transport
from core.memory.compactor import MODE_FILES_ONLY, CompactionReport, compact_history
from core.protocol.deserializer import ApplyResult, apply_file_writes
from core.snapshot.builder import create_snapshot
from core.static.executor import StaticExecutor
from core.static.options import ExecuteOptions, ExecuteResult
from storage.contracts import ConversationStore

logger = logging.getLogger(__name__)

WORKSPACES_DIR_NAME = "sigrid-workspaces"


def default_base_dir() -> Path:
    return Path(tempfile.gettempdir()) / WORKSPACES_DIR_NAME


class Workspace:
    """A rooted directory plus the operations a caller runs against it."""

    def __init__(
        self,
        root: Path | str,
        *,
        settings: SigridSettings | None = None,
        transport: ChatTransport | None = None,
        backend: FileSystemBackend | None = None,
        populated: bool = False,
    ):
        self.root = Path(root).resolve()
        self._settings = settings
        self._transport = transport
        self.backend = backend
        self._populated = populated

    @property
    def id(self) -> str:
        return self.root.name

    @property
    def path(self) -> Path:
        return self.root

    @property
    def populated(self) -> bool:
        return self._populated

    @property
    def settings(self) -> SigridSettings:
        if self._settings is None:
            self._settings = load_settings(self.root)
        return self._settings

    @property
    def transport(self) -> ChatTransport:
        if self._transport is None:
            self._transport = build_transport(self.settings)
        return self._transport

    # ── Archive ──

    async def populate(self, archive: bytes | BinaryIO, *, strip: int = 0) -> list[str]:
        """Seed the workspace from a tar.gz archive. Allowed once.

        On failure the directory is emptied again and the workspace stays
        unpopulated.

        Raises:
            AlreadyPopulatedError: The workspace was already seeded.
            ExtractError: The archive is unreadable or a member escapes root.
        """
        if self._populated:
            raise AlreadyPopulatedError(f"Workspace {self.id} is already populated")
        fileobj = io.BytesIO(archive) if isinstance(archive, (bytes, bytearray)) else archive
        try:
            files = await asyncio.to_thread(extract_archive, fileobj, self.root, strip=strip)
        except Exception:
            await asyncio.to_thread(clear_directory, self.root)
            raise
        self._populated = True
        logger.info("Populated workspace %s with %d files", self.id, len(files))
        return files

    async def populate_from_file(self, archive_path: Path | str, *, strip: int = 0) -> list[str]:
        with open(archive_path, "rb") as f:
            return await self.populate(f, strip=strip)

    async def export(self) -> bytes:
        """Portable tar.gz of the whole workspace."""
        self._ensure_exists()
        return await asyncio.to_thread(create_archive, self.root)

    # ── Static context ──

    async def snapshot(self, config: SnapshotConfig | None = None) -> str:
        self._ensure_exists()
        return await asyncio.to_thread(create_snapshot, self.root, config or self.settings.snapshot)

    async def deserialize_output(self, content: str, *, decode_html_entities: bool = False) -> ApplyResult:
        """Apply the <sg-file> records in ``content`` to this workspace."""
        self._ensure_exists()
        return await apply_file_writes(
            self.root,
            content,
            backend=self.backend,
            decode_entities=decode_html_entities,
        )

    async def execute(self, prompt: str, options: ExecuteOptions | None = None, **overrides: Any) -> ExecuteResult:
        """Run one static-context turn. See ``StaticExecutor.execute``.

        Without ``options``, defaults come from the workspace settings;
        keyword ``overrides`` are applied on top of either.
        """
        self._ensure_exists()
        settings = self.settings
        if options is None:
            options = ExecuteOptions(
                stream=settings.execution.stream,
                decode_html_entities=settings.execution.decode_html_entities,
                reasoning_effort=settings.llm.reasoning_effort,
                temperature=settings.llm.temperature,
            )
        if overrides:
            options = replace(options, **overrides)

        executor = StaticExecutor(
            self.root,
            options.client or self.transport,
            backend=self.backend,
            default_model=settings.llm.model,
            snapshot_config=settings.snapshot,
            instructions=settings.instructions,
        )
        return await executor.execute(prompt, options)

    async def compact_history(
        self,
        conversation_id: str,
        store: ConversationStore,
        *,
        mode: str = MODE_FILES_ONLY,
        dry_run: bool = False,
    ) -> CompactionReport:
        return await compact_history(conversation_id, store, mode=mode, dry_run=dry_run)

    # ── Lifecycle ──

    async def delete(self) -> None:
        """Remove the workspace directory.

        Raises:
            WorkspaceNotFoundError: The directory is already gone.
        """
        if not self.root.exists():
            raise WorkspaceNotFoundError(f"Workspace {self.id} does not exist")
        await asyncio.to_thread(shutil.rmtree, self.root)
        self._populated = False
        logger.info("Deleted workspace %s", self.id)

    def _ensure_exists(self) -> None:
        if not self.root.is_dir():
            raise WorkspaceNotFoundError(f"Workspace {self.id} does not exist")

    def __repr__(self) -> str:
        return f"Workspace(id={self.id!r}, root={str(self.root)!r}, populated={self._populated})"


async def create_workspace(
    archive: bytes | BinaryIO | None = None,
    *,
    base_dir: Path | str | None = None,
    strip: int = 0,
    settings: SigridSettings | None = None,
    transport: ChatTransport | None = None,
) -> Workspace:
    """Create a fresh workspace directory, optionally seeded from ``archive``.

    The directory is removed again if seeding fails.
    """
    base = Path(base_dir) if base_dir else default_base_dir()
    root = base / secrets.token_hex(8)
    try:
        root.mkdir(parents=True)
    except OSError as e:
        raise WorkspaceError(f"Cannot create workspace under {base}: {e}") from e

    workspace = Workspace(root, settings=settings, transport=transport)
    if archive is not None:
        try:
            await workspace.populate(archive, strip=strip)
        except Exception:
            shutil.rmtree(root, ignore_errors=True)
            raise
    logger.info("Created workspace %s", workspace.id)
    return workspace


def open_workspace(
    path: Path | str,
    *,
    settings: SigridSettings | None = None,
    transport: ChatTransport | None = None,
) -> Workspace:
    """Wrap an existing directory as an already-populated workspace."""
    root = Path(path).expanduser()
    if not root.is_dir():
        raise WorkspaceNotFoundError(f"Not a directory: {root}")
    return Workspace(root, settings=settings, transport=transport, populated=True)
