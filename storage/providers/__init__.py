"""Conversation store providers."""

from storage.providers.filesystem import FileSystemConversationStore
from storage.providers.memory import InMemoryConversationStore

__all__ = ["FileSystemConversationStore", "InMemoryConversationStore"]
