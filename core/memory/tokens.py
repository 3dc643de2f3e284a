"""Character-based token estimation."""

from __future__ import annotations

import math

from storage.models import Message

CHARS_PER_TOKEN = 4


def estimate_tokens(text: str) -> int:
    """Rough estimate (~4 chars per token), no tokenizer dependency."""
    if not text:
        return 0
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def estimate_message_tokens(messages: list[Message]) -> int:
    return sum(estimate_tokens(m.content) for m in messages)
