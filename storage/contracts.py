"""Conversation store contract."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence

from storage.models import Message


class ConversationStore(ABC):
    """Durable, append-only message history keyed by conversation id.

    Appends to one id are totally ordered: implementations serialise
    them on the id.
    """

    @abstractmethod
    async def get(self, conversation_id: str) -> list[Message] | None:
        """Return a copy of the history, or None if the id is unknown."""

    @abstractmethod
    async def append(self, conversation_id: str, message: Message) -> None:
        """Append one message, creating the conversation on first call."""

    @abstractmethod
    async def delete(self, conversation_id: str) -> None:
        """Remove the conversation. Unknown ids are ignored."""

    @abstractmethod
    async def size(self) -> int:
        """Number of distinct conversation ids."""

    async def append_many(self, conversation_id: str, messages: Sequence[Message]) -> None:
        """Append several messages with no other append interleaved."""
        for message in messages:
            await self.append(conversation_id, message)

    async def replace(self, conversation_id: str, messages: Sequence[Message]) -> None:
        """Rewrite the whole history (used by compaction)."""
        await self.delete(conversation_id)
        await self.append_many(conversation_id, messages)
