"""Static-context execution (snapshot in, file records out)."""

from core.static.executor import StaticExecutor, compact_assistant_content
from core.static.options import ExecuteOptions, ExecuteResult
from core.static.prompts import STATIC_CONTEXT_PROMPT

__all__ = [
    "ExecuteOptions",
    "ExecuteResult",
    "STATIC_CONTEXT_PROMPT",
    "StaticExecutor",
    "compact_assistant_content",
]
