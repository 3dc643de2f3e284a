"""Configuration management for sigrid."""

from .loader import ConfigLoader, load_settings
from .schema import (
    ExecutionConfig,
    LLMConfig,
    PersistenceConfig,
    SigridSettings,
    SnapshotConfig,
)

__all__ = [
    "ConfigLoader",
    "ExecutionConfig",
    "LLMConfig",
    "PersistenceConfig",
    "SigridSettings",
    "SnapshotConfig",
    "load_settings",
]
