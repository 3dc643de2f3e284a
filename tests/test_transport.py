"""Tests for core.llm.transport (LangChain-backed chat transport)."""

from unittest.mock import MagicMock, patch

import pytest
from langchain_core.language_models.fake_chat_models import GenericFakeChatModel
from langchain_core.messages import AIMessage, HumanMessage, SystemMessage

from config.schema import SigridSettings
from core.errors import TransportError
from core.llm.transport import (
    ChatTransport,
    CompletionRequest,
    LangChainTransport,
    build_transport,
    content_text,
    to_langchain_messages,
)

MESSAGES = [
    {"role": "system", "content": "sys"},
    {"role": "user", "content": "hi"},
    {"role": "assistant", "content": "Modified: a"},
]


def fake_model(text: str) -> GenericFakeChatModel:
    return GenericFakeChatModel(messages=iter([AIMessage(content=text)]))


class TestMessageConversion:
    """Tests for message conversion helpers."""

    def test_roles(self):
        converted = to_langchain_messages(MESSAGES)
        assert [type(m) for m in converted] == [SystemMessage, HumanMessage, AIMessage]
        assert converted[1].content == "hi"

    def test_unknown_role(self):
        with pytest.raises(ValueError):
            to_langchain_messages([{"role": "tool", "content": "x"}])

    def test_content_text_blocks(self):
        blocks = [{"type": "text", "text": "a"}, {"type": "reasoning", "text": "hidden"}, "b"]
        assert content_text(blocks) == "ab"
        assert content_text("plain") == "plain"
        assert content_text(None) == ""


class TestLangChainTransport:
    """Tests for LangChainTransport."""

    def test_is_chat_transport(self):
        assert isinstance(LangChainTransport(fake_model("x")), ChatTransport)

    @pytest.mark.asyncio
    async def test_complete(self):
        transport = LangChainTransport(fake_model('<sg-file path="a">A</sg-file>'))
        text = await transport.complete(CompletionRequest(model="m", messages=MESSAGES))
        assert text == '<sg-file path="a">A</sg-file>'

    @pytest.mark.asyncio
    async def test_stream_reassembles(self):
        reply = 'Done.\n<sg-file path="src/a.ts">\nexport const a = 1\n</sg-file>'
        transport = LangChainTransport(fake_model(reply))

        chunks = [c async for c in transport.stream(CompletionRequest(model="m", messages=MESSAGES, stream=True))]

        assert len(chunks) > 1
        assert "".join(chunks) == reply

    @pytest.mark.asyncio
    async def test_provider_error_wrapped(self):
        model = MagicMock()

        async def boom(*args, **kwargs):
            raise TimeoutError("slow")

        model.ainvoke = boom
        transport = LangChainTransport(model)
        with pytest.raises(TransportError):
            await transport.complete(CompletionRequest(model="m", messages=MESSAGES))

    def test_init_chat_model_kwargs_and_cache(self):
        with patch("core.llm.transport.init_chat_model") as init:
            init.return_value = fake_model("x")
            transport = LangChainTransport(api_key="k", base_url="https://x/v1", model_provider="openai")
            request = CompletionRequest(model="gpt-4o", messages=MESSAGES, temperature=0.3)

            transport._resolve(request)
            transport._resolve(request)

        init.assert_called_once()
        args, kwargs = init.call_args
        assert args == ("gpt-4o",)
        assert kwargs == {"model_provider": "openai", "api_key": "k", "base_url": "https://x/v1", "temperature": 0.3}

    def test_virtual_model_resolved(self):
        settings = SigridSettings()
        with patch("core.llm.transport.init_chat_model") as init:
            transport = LangChainTransport(settings=settings)
            transport._resolve(CompletionRequest(model="sigrid:large", messages=MESSAGES))

        args, kwargs = init.call_args
        assert args == ("claude-opus-4-6",)
        assert kwargs["model_provider"] == "anthropic"

    def test_reasoning_effort_for_gpt5(self):
        with patch("core.llm.transport.init_chat_model") as init:
            transport = LangChainTransport(model_provider="openai")
            transport._resolve(
                CompletionRequest(model="gpt-5", messages=MESSAGES, reasoning_effort="high", temperature=0.5)
            )

        _, kwargs = init.call_args
        assert kwargs["reasoning_effort"] == "high"
        assert "temperature" not in kwargs

    def test_init_failure_wrapped(self):
        with patch("core.llm.transport.init_chat_model", side_effect=ValueError("unknown provider")):
            with pytest.raises(TransportError):
                LangChainTransport()._resolve(CompletionRequest(model="nope", messages=MESSAGES))


def test_build_transport_from_settings():
    settings = SigridSettings(llm={"api_key": "k", "model_provider": "openai", "max_tokens": 100})
    transport = build_transport(settings)
    assert transport.api_key == "k"
    assert transport.model_provider == "openai"
    assert transport.model_kwargs == {"max_tokens": 100}
    assert transport.settings is settings
