"""Conversation history compaction."""

from core.memory.compactor import CompactionReport, HistoryCompactor, compact_history, compact_message
from core.memory.tokens import estimate_tokens

__all__ = ["CompactionReport", "HistoryCompactor", "compact_history", "compact_message", "estimate_tokens"]
