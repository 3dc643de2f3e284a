"""Model transport layer."""

from core.llm.model_params import normalize_model_kwargs
from core.llm.transport import (
    ChatTransport,
    CompletionRequest,
    LangChainTransport,
    build_transport,
    content_text,
)

__all__ = [
    "ChatTransport",
    "CompletionRequest",
    "LangChainTransport",
    "build_transport",
    "content_text",
    "normalize_model_kwargs",
]
