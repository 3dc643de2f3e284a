"""Static-context executor.

One turn: snapshot the workspace, send instructions + snapshot + history +
prompt to the model in a single request, apply the <sg-file> records in
the reply, then persist a compact record of the turn.

Ordering within a turn is fixed: snapshot, model call, file writes,
persistence. A crash between the last two loses the assistant turn from
history but never the files on disk.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable
from pathlib import Path
from typing import TypeVar

from config.schema import DEFAULT_MODEL, SnapshotConfig
from core.errors import ConfigurationError, ExecutionCancelled, PersistenceError
from core.events import ProgressEvent, invoke_callback
from core.filesystem.backend import FileSystemBackend
from core.llm.transport import ChatTransport, CompletionRequest
from core.memory.compactor import compact_summary
from core.protocol.deserializer import ApplyResult, apply_file_writes
from core.protocol.grammar import strip_file_blocks
from core.protocol.streaming import StreamingFileParser
from core.snapshot.builder import create_snapshot
from core.static.options import ExecuteOptions, ExecuteResult
from core.static.prompts import build_context_messages, build_system_messages
from storage.models import Message, generate_conversation_id

logger = logging.getLogger(__name__)

T = TypeVar("T")


def compact_assistant_content(content: str, applied: ApplyResult) -> str:
    """History form of an assistant reply: the touched paths, or the prose."""
    paths = [f.path for f in applied.written]
    paths += [p for p in applied.deleted if p not in paths]
    if paths:
        return compact_summary(paths)
    return strip_file_blocks(content).strip()


class StaticExecutor:
    """Runs static-context turns against one workspace root.

    Holds no mutable state between calls; independent workspaces can
    execute concurrently.
    """

    def __init__(
        self,
        root: Path | str,
        transport: ChatTransport | None = None,
        *,
        backend: FileSystemBackend | None = None,
        default_model: str = DEFAULT_MODEL,
        snapshot_config: SnapshotConfig | None = None,
        instructions: list[str] | None = None,
    ):
        self.root = Path(root).resolve()
        self.transport = transport
        self.backend = backend
        self.default_model = default_model
        self.snapshot_config = snapshot_config or SnapshotConfig()
        self.instructions = list(instructions or [])

    async def execute(self, prompt: str, options: ExecuteOptions | None = None) -> ExecuteResult:
        """Run one turn.

        Raises:
            ConfigurationError: Persistence requested without a store, or no transport.
            TransportError: The model call failed; nothing was written or persisted.
            ExecutionCancelled: ``options.cancel_event`` was set. ``result`` is None
                if nothing was committed, else the partial result.
            PersistenceError: The store failed after files were committed;
                ``result`` holds the committed result.
        """
        options = options or ExecuteOptions()
        store = options.conversation_persistence
        if options.persistence_enabled and store is None:
            raise ConfigurationError("conversation_persistence is required when conversation is enabled")
        transport = options.client or self.transport
        if transport is None:
            raise ConfigurationError("No LLM transport configured")

        self._check_cancelled(options)

        history: list[Message] = []
        if options.conversation_id and store is not None:
            history = await store.get(options.conversation_id) or []
            logger.debug("Loaded %d messages for %s", len(history), options.conversation_id)

        snapshot = await self._resolve_snapshot(options)

        messages = build_system_messages(self.instructions + list(options.instructions or []))
        messages.extend(build_context_messages(snapshot))
        messages.extend({"role": m.role, "content": m.content} for m in history)
        messages.append({"role": "user", "content": prompt})

        request = CompletionRequest(
            model=options.model or self.default_model,
            messages=messages,
            stream=options.stream,
            reasoning_effort=options.reasoning_effort,
            temperature=options.temperature,
        )

        self._check_cancelled(options)
        if options.stream:
            content = await self._stream_response(transport, request, options)
        else:
            await invoke_callback(options.progress_callback, ProgressEvent.RESPONSE_WAITING, None)
            content = await self._cancellable(transport.complete(request), options)
            await invoke_callback(options.progress_callback, ProgressEvent.RESPONSE_RECEIVED, None)

        self._check_cancelled(options)

        await invoke_callback(options.progress_callback, ProgressEvent.FILES_WRITING, None)
        applied = await apply_file_writes(
            self.root,
            content,
            backend=self.backend,
            decode_entities=options.decode_html_entities,
            cancel_event=options.cancel_event,
        )
        await invoke_callback(options.progress_callback, ProgressEvent.FILES_WRITTEN, {"count": len(applied.written)})
        if applied.errors:
            logger.warning("%d file record(s) were not applied", len(applied.errors))

        result = ExecuteResult(
            content=strip_file_blocks(content).strip(),
            raw_content=content,
            conversation_id=options.conversation_id,
            files_written=applied.written,
            files_deleted=applied.deleted,
            errors=applied.errors,
            cancelled=applied.cancelled,
        )
        if applied.cancelled:
            raise ExecutionCancelled("Execution cancelled while writing files", result=result)

        if options.persistence_enabled and store is not None:
            conversation_id = options.conversation_id or generate_conversation_id()
            result.conversation_id = conversation_id
            turn = [
                Message(role="user", content=prompt),
                Message(role="assistant", content=compact_assistant_content(content, applied)),
            ]
            try:
                await store.append_many(conversation_id, turn)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                raise PersistenceError(f"Failed to persist turn for {conversation_id}: {e}", result=result) from e

        logger.info(
            "Turn complete: %d written, %d deleted, %d errors%s",
            len(result.files_written),
            len(result.files_deleted),
            len(result.errors),
            f" ({result.conversation_id})" if result.conversation_id else "",
        )
        return result

    async def _resolve_snapshot(self, options: ExecuteOptions) -> str:
        if isinstance(options.snapshot, str) and not options.conversation_id:
            return options.snapshot

        config = options.snapshot if isinstance(options.snapshot, SnapshotConfig) else self.snapshot_config
        await invoke_callback(options.progress_callback, ProgressEvent.SNAPSHOT_GENERATING, None)
        snapshot = await asyncio.to_thread(create_snapshot, self.root, config)
        await invoke_callback(options.progress_callback, ProgressEvent.SNAPSHOT_GENERATED, {"length": len(snapshot)})
        return snapshot

    async def _stream_response(
        self,
        transport: ChatTransport,
        request: CompletionRequest,
        options: ExecuteOptions,
    ) -> str:
        parser = StreamingFileParser()
        chunks: list[str] = []
        await invoke_callback(options.progress_callback, ProgressEvent.RESPONSE_STREAMING, None)

        stream = transport.stream(request)
        chunk_iter = aiter(stream)
        try:
            while True:
                # A stalled provider must not hold off the cancel event.
                try:
                    chunk = await self._cancellable(anext(chunk_iter), options)
                except StopAsyncIteration:
                    break
                self._check_cancelled(options)
                chunks.append(chunk)
                for event in parser.feed(chunk):
                    await invoke_callback(options.progress_callback, event.event, event.data)
                await invoke_callback(options.stream_callback, chunk)
        finally:
            aclose = getattr(stream, "aclose", None)
            if aclose is not None:
                await aclose()

        for event in parser.finish():
            await invoke_callback(options.progress_callback, event.event, event.data)
        await invoke_callback(options.progress_callback, ProgressEvent.RESPONSE_STREAMED, None)
        return "".join(chunks)

    async def _cancellable(self, awaitable: Awaitable[T], options: ExecuteOptions) -> T:
        """Await ``awaitable`` unless the cancel event fires first."""
        if options.cancel_event is None:
            return await awaitable

        task = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(options.cancel_event.wait())
        try:
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            waiter.cancel()
        if not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
            raise ExecutionCancelled()
        return task.result()

    @staticmethod
    def _check_cancelled(options: ExecuteOptions) -> None:
        if options.cancel_event is not None and options.cancel_event.is_set():
            raise ExecutionCancelled()
