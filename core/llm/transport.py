"""Chat completion transport.

The static executor only needs two calls from a model: a whole completion
and a text stream. ``ChatTransport`` is that seam; ``LangChainTransport``
implements it with ``init_chat_model`` so any provider langchain knows
about can back a workspace. Tests substitute a scripted transport.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from langchain.chat_models import init_chat_model
from langchain_core.language_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage

from config.schema import SigridSettings
from core.errors import TransportError
from core.llm.model_params import normalize_model_kwargs

logger = logging.getLogger(__name__)

_MESSAGE_TYPES: dict[str, type[BaseMessage]] = {
    "system": SystemMessage,
    "user": HumanMessage,
    "assistant": AIMessage,
}


@dataclass
class CompletionRequest:
    model: str
    messages: list[dict[str, str]]
    stream: bool = False
    reasoning_effort: str | None = None
    temperature: float | None = None
    extra: dict[str, Any] = field(default_factory=dict)


@runtime_checkable
class ChatTransport(Protocol):
    async def complete(self, request: CompletionRequest) -> str:
        """Return the full assistant text for the request."""
        ...

    def stream(self, request: CompletionRequest) -> AsyncIterator[str]:
        """Yield assistant text chunks in order."""
        ...


def to_langchain_messages(messages: list[dict[str, str]]) -> list[BaseMessage]:
    converted = []
    for message in messages:
        message_type = _MESSAGE_TYPES.get(message["role"])
        if message_type is None:
            raise ValueError(f"Unsupported message role: {message['role']!r}")
        converted.append(message_type(content=message["content"]))
    return converted


def content_text(content: Any) -> str:
    """Flatten langchain message content (str or content blocks) to text."""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for block in content:
            if isinstance(block, str):
                parts.append(block)
            elif isinstance(block, dict) and block.get("type") == "text":
                parts.append(block.get("text", ""))
        return "".join(parts)
    return ""


class LangChainTransport:
    """ChatTransport backed by a langchain chat model.

    Either pass a ready ``model`` (any ``BaseChatModel``) or let the
    transport build one per model name with ``init_chat_model``.
    """

    def __init__(
        self,
        model: BaseChatModel | None = None,
        *,
        api_key: str | None = None,
        base_url: str | None = None,
        model_provider: str | None = None,
        model_kwargs: dict[str, Any] | None = None,
        settings: SigridSettings | None = None,
    ):
        self._model = model
        self.api_key = api_key
        self.base_url = base_url
        self.model_provider = model_provider
        self.model_kwargs = dict(model_kwargs or {})
        self.settings = settings
        self._cache: dict[tuple[str, tuple[tuple[str, Any], ...]], BaseChatModel] = {}

    def _resolve(self, request: CompletionRequest) -> BaseChatModel:
        if self._model is not None:
            return self._model

        model_name = request.model
        kwargs: dict[str, Any] = dict(self.model_kwargs)
        if self.settings is not None:
            model_name, virtual_kwargs = self.settings.resolve_model(model_name)
            kwargs.update(virtual_kwargs)
        if self.model_provider and "model_provider" not in kwargs:
            kwargs["model_provider"] = self.model_provider
        if self.api_key:
            kwargs["api_key"] = self.api_key
        if self.base_url:
            kwargs["base_url"] = self.base_url
        if request.temperature is not None:
            kwargs["temperature"] = request.temperature
        if request.reasoning_effort:
            kwargs["reasoning_effort"] = request.reasoning_effort
        kwargs.update(request.extra)
        kwargs = normalize_model_kwargs(model_name, kwargs)

        key = (model_name, tuple(sorted((k, repr(v)) for k, v in kwargs.items())))
        if key not in self._cache:
            logger.debug("Initialising chat model %s", model_name)
            try:
                self._cache[key] = init_chat_model(model_name, **kwargs)
            except Exception as e:
                raise TransportError(f"Cannot initialise model {model_name}: {e}") from e
        return self._cache[key]

    async def complete(self, request: CompletionRequest) -> str:
        model = self._resolve(request)
        try:
            response = await model.ainvoke(to_langchain_messages(request.messages))
        except asyncio.CancelledError:
            raise
        except Exception as e:
            raise TransportError(f"Model call failed: {e}") from e
        return content_text(response.content)

    async def stream(self, request: CompletionRequest) -> AsyncIterator[str]:
        model = self._resolve(request)
        try:
            async for chunk in model.astream(to_langchain_messages(request.messages)):
                text = content_text(chunk.content)
                if text:
                    yield text
        except asyncio.CancelledError:
            raise
        except Exception as e:
            raise TransportError(f"Model stream failed: {e}") from e


def build_transport(settings: SigridSettings) -> LangChainTransport:
    """Build the default transport from LLM settings."""
    llm = settings.llm
    model_kwargs = dict(llm.model_kwargs)
    if llm.max_tokens is not None:
        model_kwargs.setdefault("max_tokens", llm.max_tokens)
    return LangChainTransport(
        api_key=llm.api_key,
        base_url=llm.base_url,
        model_provider=llm.model_provider,
        model_kwargs=model_kwargs,
        settings=settings,
    )
