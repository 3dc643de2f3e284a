"""Core configuration schema for sigrid using Pydantic.

This module defines the complete configuration structure with:
- Nested config groups (LLM, Snapshot, Persistence, Execution)
- Virtual model mapping (sigrid:mini/medium/large)
- Field validators for base URLs, extensions and reasoning effort
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator, model_validator

# Default model used across the codebase
DEFAULT_MODEL = "gpt-5-mini"

DEFAULT_MAX_FILE_SIZE = 1024 * 1024

DEFAULT_EXCLUDES = [
    # Dependencies
    "node_modules/",
    ".venv/",
    "__pycache__/",
    # Build artifacts
    "dist/",
    "build/",
    ".next/",
    "out/",
    "coverage/",
    # Version control / tools
    ".git/",
    ".svn/",
    ".hg/",
    ".sigrid/",
    ".cache/",
    # Lock files (machine-generated)
    "package-lock.json",
    "pnpm-lock.yaml",
    "yarn.lock",
    "bun.lockb",
]

ReasoningEffort = Literal["minimal", "low", "medium", "high"]


def _normalize_base_url(v: str | None) -> str | None:
    """Ensure base_url ends with /v1 for OpenAI-compatible APIs."""
    if not v:
        return v
    v = v.rstrip("/")
    if v.endswith("/v1") or "/v1/" in v:
        return v
    return f"{v}/v1"


# ============================================================================
# LLM Configuration
# ============================================================================


class ModelSpec(BaseModel):
    """Virtual model specification for sigrid:* model names."""

    model: str = Field(..., description="Actual model name to use")
    provider: str | None = Field(None, description="Model provider (openai/anthropic/etc)")
    temperature: float | None = Field(None, ge=0.0, le=2.0, description="Temperature override")
    max_tokens: int | None = Field(None, gt=0, description="Max tokens override")


class LLMConfig(BaseModel):
    """LLM transport configuration."""

    model: str = Field(DEFAULT_MODEL, description="Default model name")
    model_provider: str | None = Field(None, description="Explicit provider (openai/anthropic/etc)")
    api_key: str | None = Field(None, description="API key (falls back to env vars)")
    base_url: str | None = Field(None, description="Base URL for API (falls back to env vars)")
    temperature: float | None = Field(None, ge=0.0, le=2.0, description="Temperature")
    max_tokens: int | None = Field(None, gt=0, description="Max tokens")
    reasoning_effort: ReasoningEffort | None = Field(None, description="Reasoning effort hint")
    model_kwargs: dict[str, Any] = Field(default_factory=dict, description="Extra kwargs for init_chat_model")

    @field_validator("base_url")
    @classmethod
    def normalize_base_url(cls, v: str | None) -> str | None:
        return _normalize_base_url(v)


# ============================================================================
# Snapshot Configuration
# ============================================================================


class SnapshotConfig(BaseModel):
    """Options for serialising a workspace into a snapshot document."""

    include: list[str] | None = Field(None, description="Glob patterns an entry must match (None = all)")
    exclude: list[str] = Field(default_factory=lambda: list(DEFAULT_EXCLUDES), description="Veto globs")
    extensions: list[str] | None = Field(None, description="Allowed file extensions (None = all)")
    max_file_size: int = Field(DEFAULT_MAX_FILE_SIZE, gt=0, description="Max inlined file size in bytes")
    respect_gitignore: bool = Field(True, description="Apply .gitignore files found during the walk")
    include_placeholders: bool = Field(True, description="Emit placeholder records for omitted files")
    max_total_bytes: int | None = Field(None, gt=0, description="Ceiling on the total inlined body size")

    @field_validator("extensions")
    @classmethod
    def normalize_extensions(cls, v: list[str] | None) -> list[str] | None:
        if v is None:
            return v
        return [ext if ext.startswith(".") else f".{ext}" for ext in v]


# ============================================================================
# Persistence / Execution Configuration
# ============================================================================


class PersistenceConfig(BaseModel):
    """Conversation store configuration."""

    backend: Literal["memory", "filesystem"] = Field("memory", description="Conversation store backend")
    directory: Path = Field(
        default_factory=lambda: Path.home() / ".sigrid" / "conversations",
        description="Directory for the filesystem store",
    )


class ExecutionConfig(BaseModel):
    """Defaults for static execution."""

    stream: bool = Field(False, description="Stream the model response")
    decode_html_entities: bool = Field(False, description="Decode HTML entities in file bodies")


# ============================================================================
# Main Settings
# ============================================================================


class SigridSettings(BaseModel):
    """Main sigrid configuration.

    Configuration priority (highest to lowest):
    1. Caller overrides
    2. Project config (.sigrid/runtime.json)
    3. User config (~/.sigrid/runtime.json)
    4. System defaults (config/defaults/runtime.json)
    5. Environment variables (for API keys)
    """

    llm: LLMConfig = Field(default_factory=LLMConfig, description="LLM configuration")
    snapshot: SnapshotConfig = Field(default_factory=SnapshotConfig, description="Snapshot options")
    persistence: PersistenceConfig = Field(default_factory=PersistenceConfig, description="Conversation store")
    execution: ExecutionConfig = Field(default_factory=ExecutionConfig, description="Execution defaults")
    instructions: list[str] = Field(default_factory=list, description="Extra system instructions")

    # Virtual model mapping
    model_mapping: dict[str, ModelSpec] = Field(
        default_factory=lambda: {
            "sigrid:mini": ModelSpec(model="gpt-5-mini", provider="openai"),
            "sigrid:medium": ModelSpec(model="gpt-5", provider="openai"),
            "sigrid:large": ModelSpec(model="claude-opus-4-6", provider="anthropic"),
        },
        description="Virtual model name mapping",
    )

    @model_validator(mode="after")
    def fill_from_environment(self) -> SigridSettings:
        """Fall back to provider environment variables for key and base URL."""
        if self.llm.api_key is None:
            self.llm.api_key = (
                os.getenv("SIGRID_API_KEY")
                or os.getenv("OPENAI_API_KEY")
                or os.getenv("ANTHROPIC_API_KEY")
                or os.getenv("OPENROUTER_API_KEY")
            )
        if self.llm.base_url is None:
            base_url = os.getenv("OPENAI_BASE_URL") or os.getenv("ANTHROPIC_BASE_URL")
            if base_url:
                self.llm.base_url = _normalize_base_url(base_url)
        return self

    def resolve_model(self, model_name: str) -> tuple[str, dict[str, Any]]:
        """Resolve virtual model name to actual model and config.

        Args:
            model_name: Model name (can be sigrid:* virtual name)

        Returns:
            Tuple of (actual_model_name, model_kwargs)

        Raises:
            ValueError: If virtual model name not found in mapping
        """
        if not model_name.startswith("sigrid:"):
            return model_name, {}

        if model_name not in self.model_mapping:
            raise ValueError(f"Unknown virtual model: {model_name}. Available: {', '.join(self.model_mapping.keys())}")

        spec = self.model_mapping[model_name]
        kwargs: dict[str, Any] = {}
        if spec.provider:
            kwargs["model_provider"] = spec.provider
        if spec.temperature is not None:
            kwargs["temperature"] = spec.temperature
        if spec.max_tokens is not None:
            kwargs["max_tokens"] = spec.max_tokens

        return spec.model, kwargs
