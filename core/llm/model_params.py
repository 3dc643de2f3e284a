"""Model parameter normalization for provider/model-specific compatibility."""

from __future__ import annotations

from typing import Any

# Reasoning-capable model families that accept ``reasoning_effort``.
_REASONING_PREFIXES = ("gpt-5", "o1", "o3", "o4")


def normalize_model_kwargs(model_name: str, model_kwargs: dict[str, Any]) -> dict[str, Any]:
    """Return model kwargs normalized for the target model/provider behavior."""
    kwargs = dict(model_kwargs)
    provider = str(kwargs.get("model_provider") or "").strip().lower()
    name = (model_name or "").strip().lower()

    # OpenAI GPT-5 chat completions reject max_tokens and require max_completion_tokens.
    if provider == "openai" and _is_openai_gpt5(name):
        if "max_completion_tokens" not in kwargs and "max_tokens" in kwargs:
            kwargs["max_completion_tokens"] = kwargs["max_tokens"]
        kwargs.pop("max_tokens", None)

    effort = kwargs.pop("reasoning_effort", None)
    if effort:
        if provider in ("", "openai") and _is_reasoning_model(name):
            kwargs["reasoning_effort"] = effort
        # GPT-5 family only accepts the default temperature alongside reasoning.
        if _is_openai_gpt5(name):
            kwargs.pop("temperature", None)

    return kwargs


def _bare_name(model_name: str) -> str:
    return model_name.split("/")[-1]


def _is_openai_gpt5(model_name: str) -> bool:
    return _bare_name(model_name).startswith("gpt-5")


def _is_reasoning_model(model_name: str) -> bool:
    return _bare_name(model_name).startswith(_REASONING_PREFIXES)
