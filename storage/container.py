"""Conversation store selection from settings."""

from __future__ import annotations

from config.schema import PersistenceConfig
from storage.contracts import ConversationStore
from storage.providers import FileSystemConversationStore, InMemoryConversationStore


def create_conversation_store(config: PersistenceConfig | None = None) -> ConversationStore:
    """Build the store named by ``config.backend``."""
    config = config or PersistenceConfig()
    if config.backend == "filesystem":
        return FileSystemConversationStore(config.directory)
    if config.backend == "memory":
        return InMemoryConversationStore()
    raise ValueError(f"Unsupported persistence backend: {config.backend}")
