"""History compaction: collapse verbose assistant turns to a file list.

An assistant turn that carried ``<sg-file>`` records is replaced with
``Modified: p1, p2``. The files themselves are on disk and reach the next
turn through the fresh snapshot, so the bodies in history are dead weight.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from core.memory.tokens import estimate_message_tokens
from core.protocol.grammar import extract_file_paths
from storage.contracts import ConversationStore
from storage.models import Message

logger = logging.getLogger(__name__)

MODE_FILES_ONLY = "files-only"
COMPACT_PREFIX = "Modified: "


@dataclass
class CompactionReport:
    original_chars: int = 0
    compacted_chars: int = 0
    original_tokens: int = 0
    compacted_tokens: int = 0
    reduction: str = "0%"
    messages_processed: int = 0
    messages_compacted: int = 0
    dry_run: bool = False


def compact_summary(paths: list[str]) -> str:
    return COMPACT_PREFIX + ", ".join(paths)


def compact_message(message: Message) -> Message | None:
    """Compact form of an assistant message, or None if nothing to compact."""
    if message.role != "assistant":
        return None
    paths = extract_file_paths(message.content)
    if not paths:
        return None
    meta = dict(message.meta or {})
    meta.setdefault("original_length", len(message.content))
    return Message(role="assistant", content=compact_summary(paths), meta=meta)


def _reduction(original: int, compacted: int) -> str:
    if original == 0 or original == compacted:
        return "0%"
    return f"{(original - compacted) / original * 100:.1f}%"


class HistoryCompactor:
    """Rewrites a stored conversation with compact assistant turns."""

    def __init__(self, store: ConversationStore):
        if store is None:
            raise ValueError("conversation store required")
        self.store = store

    async def compact(
        self,
        conversation_id: str,
        mode: str = MODE_FILES_ONLY,
        dry_run: bool = False,
    ) -> CompactionReport:
        if not conversation_id:
            raise ValueError("conversation_id required")
        if mode != MODE_FILES_ONLY:
            raise ValueError(f"Unsupported compaction mode: {mode}")

        history = await self.store.get(conversation_id) or []
        report = CompactionReport(messages_processed=len(history), dry_run=dry_run)
        if not history:
            return report

        compacted: list[Message] = []
        for message in history:
            replacement = compact_message(message)
            if replacement is not None:
                report.messages_compacted += 1
            compacted.append(replacement or message)

        report.original_chars = sum(len(m.content) for m in history)
        report.compacted_chars = sum(len(m.content) for m in compacted)
        report.original_tokens = estimate_message_tokens(history)
        report.compacted_tokens = estimate_message_tokens(compacted)
        report.reduction = _reduction(report.original_chars, report.compacted_chars)

        if report.messages_compacted and not dry_run:
            await self.store.replace(conversation_id, compacted)
            logger.info(
                "Compacted %d/%d messages in %s (%s)",
                report.messages_compacted,
                report.messages_processed,
                conversation_id,
                report.reduction,
            )
        return report


async def compact_history(
    conversation_id: str,
    store: ConversationStore,
    mode: str = MODE_FILES_ONLY,
    dry_run: bool = False,
) -> CompactionReport:
    """Compact one stored conversation. See ``HistoryCompactor``."""
    return await HistoryCompactor(store).compact(conversation_id, mode=mode, dry_run=dry_run)
