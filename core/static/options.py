"""Options and result types for static execution."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field

from config.schema import ReasoningEffort, SnapshotConfig
from core.errors import ErrorKind, RecordError
from core.events import ProgressCallback, StreamCallback
from core.llm.transport import ChatTransport
from core.protocol.deserializer import WrittenFile
from storage.contracts import ConversationStore


@dataclass
class ExecuteOptions:
    """Per-call options for ``StaticExecutor.execute``.

    ``snapshot`` is a prebuilt snapshot string (used verbatim), snapshot
    options for a fresh build, or None for the workspace defaults. A
    ``conversation_id`` always forces a fresh snapshot so files written
    by earlier turns are visible.

    Persistence is on when ``conversation`` is true or a
    ``conversation_id`` is given; both require ``conversation_persistence``.
    """

    model: str | None = None
    instructions: list[str] | None = None
    snapshot: str | SnapshotConfig | None = None
    conversation: bool = False
    conversation_id: str | None = None
    conversation_persistence: ConversationStore | None = None
    stream: bool = False
    stream_callback: StreamCallback | None = None
    progress_callback: ProgressCallback | None = None
    reasoning_effort: ReasoningEffort | None = None
    temperature: float | None = None
    decode_html_entities: bool = False
    cancel_event: asyncio.Event | None = None
    client: ChatTransport | None = None

    @property
    def persistence_enabled(self) -> bool:
        return self.conversation or bool(self.conversation_id)


@dataclass
class ExecuteResult:
    """Outcome of one static execution.

    ``content`` is the reply with file records stripped; ``raw_content``
    is the reply exactly as received. An empty ``files_written`` with a
    non-empty ``content`` means the model answered without files or in
    the wrong format; ``parse_error_count`` tells the two apart.
    """

    content: str
    raw_content: str = ""
    conversation_id: str | None = None
    files_written: list[WrittenFile] = field(default_factory=list)
    files_deleted: list[str] = field(default_factory=list)
    errors: list[RecordError] = field(default_factory=list)
    cancelled: bool = False

    @property
    def parse_error_count(self) -> int:
        return sum(1 for e in self.errors if e.kind is ErrorKind.PARSE_ERROR)

    @property
    def written_paths(self) -> list[str]:
        return [f.path for f in self.files_written]
