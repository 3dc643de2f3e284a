"""Scripted ChatTransport for executor tests.

Replies are either strings (returned whole, or split into chunks when
streaming) or callables receiving the request, so a test can compute the
reply from the snapshot it was sent.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Callable
from typing import Union

from core.errors import TransportError
from core.llm.transport import CompletionRequest

Reply = Union[str, Callable[[CompletionRequest], str], Exception]


class ScriptedTransport:
    def __init__(self, *replies: Reply, chunk_size: int = 7, delay: float = 0.0):
        self.replies = list(replies)
        self.chunk_size = chunk_size
        self.delay = delay
        self.requests: list[CompletionRequest] = []

    def _next(self, request: CompletionRequest) -> str:
        self.requests.append(request)
        if not self.replies:
            raise TransportError("No scripted reply left")
        reply = self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]
        if isinstance(reply, Exception):
            raise reply
        if callable(reply):
            return reply(request)
        return reply

    async def complete(self, request: CompletionRequest) -> str:
        reply = self._next(request)
        if self.delay:
            await asyncio.sleep(self.delay)
        return reply

    async def stream(self, request: CompletionRequest) -> AsyncIterator[str]:
        reply = self._next(request)
        for i in range(0, len(reply), self.chunk_size):
            if self.delay:
                await asyncio.sleep(self.delay)
            yield reply[i : i + self.chunk_size]

    @property
    def last_request(self) -> CompletionRequest:
        return self.requests[-1]

    def last_snapshot(self) -> str:
        """The snapshot message of the most recent request."""
        return self.last_request.messages[snapshot_index(self.last_request)]["content"]


def snapshot_index(request: CompletionRequest) -> int:
    for i, message in enumerate(request.messages):
        if message["role"] == "user" and message["content"] == "Here is the full codebase for context:":
            return i + 1
    raise AssertionError("request carries no snapshot")
