from .container import create_conversation_store
from .contracts import ConversationStore
from .models import Message, generate_conversation_id, is_conversation_id
from .providers import FileSystemConversationStore, InMemoryConversationStore

__all__ = [
    "ConversationStore",
    "FileSystemConversationStore",
    "InMemoryConversationStore",
    "Message",
    "create_conversation_store",
    "generate_conversation_id",
    "is_conversation_id",
]
