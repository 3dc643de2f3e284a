"""Advisory streaming parser for <sg-file> records.

Consumes response chunks as they arrive and produces per-file preview
events. It never raises: malformed input is logged and the parser
resynchronises. The authoritative parse of the full response happens in
core.protocol.deserializer once the stream has completed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from core.events import ProgressEvent
from core.protocol.grammar import (
    CLOSE_TAG,
    MAX_OPEN_TAG_LENGTH,
    OPEN_MARKER,
    OpenTag,
    TagSyntaxError,
    find_open_marker,
    find_tag_end,
    parse_open_tag,
    trim_body,
)

logger = logging.getLogger(__name__)

# Longest tail that may hold a split closing tag.
HOLDBACK_CHARS = 20


class _State(Enum):
    OUTSIDE = "outside"
    INSIDE = "inside"


@dataclass
class StreamEvent:
    event: ProgressEvent
    data: dict[str, Any] = field(default_factory=dict)


class StreamingFileParser:
    """Incremental two-state parser (OUTSIDE / INSIDE a record).

    Every FILE_STREAMING_START is paired with exactly one
    FILE_STREAMING_END; body text is emitted once, in order, as
    FILE_STREAMING_CONTENT events.
    """

    def __init__(self) -> None:
        self._state = _State.OUTSIDE
        self._buffer = ""
        self._current: OpenTag | None = None
        self._body: list[str] = []

    @property
    def inside_file(self) -> bool:
        return self._state is _State.INSIDE

    def feed(self, chunk: str) -> list[StreamEvent]:
        """Consume one chunk and return the events it completes."""
        events: list[StreamEvent] = []
        try:
            self._buffer += chunk
            self._drain(events)
        except Exception:
            logger.warning("Streaming parser failed, resynchronising", exc_info=True)
            self._abandon(events)
        return events

    def finish(self) -> list[StreamEvent]:
        """Flush at end of stream; closes a record left open by truncation."""
        events: list[StreamEvent] = []
        if self._state is _State.INSIDE:
            if self._buffer:
                self._emit_content(events, self._buffer)
            self._emit_end(events, complete=False)
        self._buffer = ""
        self._state = _State.OUTSIDE
        return events

    def _drain(self, events: list[StreamEvent]) -> None:
        while True:
            if self._state is _State.OUTSIDE:
                if not self._scan_outside(events):
                    return
            elif not self._scan_inside(events):
                return

    def _scan_outside(self, events: list[StreamEvent]) -> bool:
        buf = self._buffer
        idx = find_open_marker(buf)
        if idx == -1:
            # Prose between records is dropped; keep a tail that may start a marker.
            keep = len(OPEN_MARKER) - 1
            self._buffer = buf[-keep:] if len(buf) > keep else buf
            return False

        end = find_tag_end(buf, idx + len(OPEN_MARKER))
        if end == -1:
            if len(buf) - idx > MAX_OPEN_TAG_LENGTH:
                logger.debug("Dropping unterminated opening tag")
                self._buffer = buf[idx + len(OPEN_MARKER) :]
                return True
            self._buffer = buf[idx:]
            return False

        try:
            tag = parse_open_tag(buf[idx : end + 1])
        except TagSyntaxError as e:
            logger.debug("Skipping malformed opening tag: %s", e)
            self._buffer = buf[end + 1 :]
            return True

        self._buffer = buf[end + 1 :]
        self._current = tag
        self._body = []
        self._state = _State.INSIDE
        data: dict[str, Any] = {"path": tag.path, "action": tag.action.value}
        if tag.summary is not None:
            data["summary"] = tag.summary
        events.append(StreamEvent(ProgressEvent.FILE_STREAMING_START, data))
        return True

    def _scan_inside(self, events: list[StreamEvent]) -> bool:
        buf = self._buffer
        close = buf.find(CLOSE_TAG)
        if close != -1:
            if close:
                self._emit_content(events, buf[:close])
            self._buffer = buf[close + len(CLOSE_TAG) :]
            self._emit_end(events, complete=True)
            return True

        if len(buf) > HOLDBACK_CHARS:
            self._emit_content(events, buf[:-HOLDBACK_CHARS])
            self._buffer = buf[-HOLDBACK_CHARS:]
        return False

    def _emit_content(self, events: list[StreamEvent], content: str) -> None:
        assert self._current is not None
        self._body.append(content)
        events.append(
            StreamEvent(
                ProgressEvent.FILE_STREAMING_CONTENT,
                {"path": self._current.path, "content": content, "is_incremental": True},
            )
        )

    def _emit_end(self, events: list[StreamEvent], *, complete: bool) -> None:
        assert self._current is not None
        events.append(
            StreamEvent(
                ProgressEvent.FILE_STREAMING_END,
                {
                    "path": self._current.path,
                    "action": self._current.action.value,
                    "full_content": trim_body("".join(self._body)),
                    "complete": complete,
                },
            )
        )
        self._current = None
        self._body = []
        self._state = _State.OUTSIDE

    def _abandon(self, events: list[StreamEvent]) -> None:
        if self._state is _State.INSIDE and self._current is not None:
            self._emit_end(events, complete=False)
        self._state = _State.OUTSIDE
        self._current = None
        self._body = []
        self._buffer = ""
