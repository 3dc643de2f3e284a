"""Progress events emitted during a static execution."""

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable
from enum import StrEnum
from typing import Any

logger = logging.getLogger(__name__)


class ProgressEvent(StrEnum):
    SNAPSHOT_GENERATING = "SNAPSHOT_GENERATING"
    SNAPSHOT_GENERATED = "SNAPSHOT_GENERATED"
    RESPONSE_WAITING = "RESPONSE_WAITING"
    RESPONSE_RECEIVED = "RESPONSE_RECEIVED"
    RESPONSE_STREAMING = "RESPONSE_STREAMING"
    RESPONSE_STREAMED = "RESPONSE_STREAMED"
    FILE_STREAMING_START = "FILE_STREAMING_START"
    FILE_STREAMING_CONTENT = "FILE_STREAMING_CONTENT"
    FILE_STREAMING_END = "FILE_STREAMING_END"
    FILES_WRITING = "FILES_WRITING"
    FILES_WRITTEN = "FILES_WRITTEN"


# (event, data) -> None, sync or async
ProgressCallback = Callable[[ProgressEvent, dict[str, Any] | None], Awaitable[None] | None]
# (chunk) -> None, sync or async
StreamCallback = Callable[[str], Awaitable[None] | None]


async def invoke_callback(callback: Callable[..., Any] | None, *args: Any) -> None:
    """Call a sync or async user callback."""
    if callback is None:
        return
    result = callback(*args)
    if inspect.isawaitable(result):
        await result
