"""Process-local conversation store."""

from __future__ import annotations

from collections.abc import Sequence

from storage.contracts import ConversationStore
from storage.locks import KeyedLock
from storage.models import Message


class InMemoryConversationStore(ConversationStore):
    """Map of conversation id to message list. Lost on process exit.

    Histories are copied on the way in and out so callers cannot mutate
    stored messages.
    """

    def __init__(self) -> None:
        self._conversations: dict[str, list[Message]] = {}
        self._locks = KeyedLock()

    async def get(self, conversation_id: str) -> list[Message] | None:
        messages = self._conversations.get(conversation_id)
        if messages is None:
            return None
        return [m.copy() for m in messages]

    async def append(self, conversation_id: str, message: Message) -> None:
        await self.append_many(conversation_id, [message])

    async def append_many(self, conversation_id: str, messages: Sequence[Message]) -> None:
        async with self._locks.hold(conversation_id):
            self._conversations.setdefault(conversation_id, []).extend(m.copy() for m in messages)

    async def replace(self, conversation_id: str, messages: Sequence[Message]) -> None:
        async with self._locks.hold(conversation_id):
            self._conversations[conversation_id] = [m.copy() for m in messages]

    async def delete(self, conversation_id: str) -> None:
        async with self._locks.hold(conversation_id):
            self._conversations.pop(conversation_id, None)

    async def size(self) -> int:
        return len(self._conversations)

    async def clear(self) -> None:
        self._conversations.clear()
