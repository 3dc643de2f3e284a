"""The <sg-file> file-write grammar shared by the snapshot, the streaming
parser, the final deserialiser and the history compactor.

    <sg-file path="RELPATH"[ action="ACT"][ summary="SUM"]>
    BODY
    </sg-file>

Attribute values are double-quoted with no escape sequences. The first
``</sg-file>`` after an opening tag closes the record.
"""

from __future__ import annotations

import re
from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import StrEnum

TAG_NAME = "sg-file"
OPEN_MARKER = f"<{TAG_NAME}"
CLOSE_TAG = f"</{TAG_NAME}>"

# An opening tag longer than this without a closing '>' is malformed.
MAX_OPEN_TAG_LENGTH = 4096

_OPEN_TAG_RE = re.compile(rf'<{TAG_NAME}((?:\s+[A-Za-z_][\w-]*\s*=\s*"[^"]*")*)\s*>', re.DOTALL)
_ATTR_RE = re.compile(r'([A-Za-z_][\w-]*)\s*=\s*"([^"]*)"')
_PATH_ATTR_RE = re.compile(r'\spath\s*=\s*"([^"]*)"')
_BLANK_RUN_RE = re.compile(r"\n{3,}")

# &amp; must be decoded last so "&amp;lt;" becomes "&lt;", not "<".
_ENTITIES = (
    ("&lt;", "<"),
    ("&gt;", ">"),
    ("&quot;", '"'),
    ("&apos;", "'"),
    ("&amp;", "&"),
)


class FileAction(StrEnum):
    WRITE = "write"
    DELETE = "delete"


class TagSyntaxError(ValueError):
    """An opening tag that does not follow the grammar."""


@dataclass(frozen=True)
class OpenTag:
    path: str
    action: FileAction = FileAction.WRITE
    summary: str | None = None
    attributes: dict[str, str] = field(default_factory=dict)

    @property
    def omitted(self) -> str | None:
        """Reason tag carried by snapshot placeholder records."""
        return self.attributes.get("omitted")


@dataclass
class ParsedRecord:
    """One record found in a response, or the reason it could not be read."""

    tag: OpenTag | None
    body: str | None = None
    error: str | None = None
    raw_path: str | None = None

    @property
    def path(self) -> str | None:
        return self.tag.path if self.tag else self.raw_path


def find_open_marker(text: str, start: int = 0) -> int:
    """Index of the next ``<sg-file`` opening marker, or -1.

    A marker at the very end of ``text`` is returned so streaming callers
    can wait for the rest of the tag.
    """
    idx = text.find(OPEN_MARKER, start)
    while idx != -1:
        nxt = idx + len(OPEN_MARKER)
        if nxt >= len(text) or text[nxt].isspace() or text[nxt] == ">":
            return idx
        idx = text.find(OPEN_MARKER, idx + 1)
    return -1


def find_tag_end(text: str, start: int) -> int:
    """Index of the '>' closing an opening tag (quotes respected), or -1."""
    in_quote = False
    for i in range(start, len(text)):
        ch = text[i]
        if ch == '"':
            in_quote = not in_quote
        elif ch == ">" and not in_quote:
            return i
    return -1


def parse_open_tag(tag_text: str) -> OpenTag:
    """Parse a complete opening tag.

    Raises:
        TagSyntaxError: If the tag is malformed, lacks a path or names an
            unknown action.
    """
    match = _OPEN_TAG_RE.fullmatch(tag_text)
    if match is None:
        raise TagSyntaxError(f"Malformed opening tag: {tag_text[:120]!r}")

    attributes = dict(_ATTR_RE.findall(match.group(1)))
    path = attributes.get("path", "").strip()
    if not path:
        raise TagSyntaxError("Opening tag has no path attribute")

    raw_action = attributes.get("action", FileAction.WRITE.value).strip().lower()
    try:
        action = FileAction(raw_action)
    except ValueError as e:
        raise TagSyntaxError(f"Unknown action {raw_action!r} for {path}") from e

    return OpenTag(path=path, action=action, summary=attributes.get("summary"), attributes=attributes)


def _guess_path(tag_text: str) -> str | None:
    match = _PATH_ATTR_RE.search(tag_text)
    return match.group(1) if match else None


def iter_records(text: str) -> Iterator[ParsedRecord]:
    """Yield every record in ``text`` in source order.

    Malformed records are yielded with ``error`` set. A record without a
    closing tag (a truncated stream) ends the scan.
    """
    pos = 0
    while True:
        idx = find_open_marker(text, pos)
        if idx == -1:
            return

        end = find_tag_end(text, idx + len(OPEN_MARKER))
        if end == -1 or end - idx > MAX_OPEN_TAG_LENGTH:
            yield ParsedRecord(tag=None, error="Unterminated opening tag", raw_path=_guess_path(text[idx:]))
            if end == -1:
                return
            pos = idx + len(OPEN_MARKER)
            continue

        tag_text = text[idx : end + 1]
        try:
            tag = parse_open_tag(tag_text)
        except TagSyntaxError as e:
            # Not a record opening; the next close belongs to whatever follows.
            yield ParsedRecord(tag=None, error=str(e), raw_path=_guess_path(tag_text))
            pos = end + 1
            continue

        close = text.find(CLOSE_TAG, end + 1)
        if close == -1:
            yield ParsedRecord(tag=None, error="Missing closing </sg-file> tag", raw_path=tag.path)
            return
        yield ParsedRecord(tag=tag, body=text[end + 1 : close])
        pos = close + len(CLOSE_TAG)


def extract_file_paths(text: str) -> list[str]:
    """Paths named by opening tags in ``text``, first occurrence order."""
    paths: list[str] = []
    pos = 0
    while True:
        idx = find_open_marker(text, pos)
        if idx == -1:
            break
        end = find_tag_end(text, idx + len(OPEN_MARKER))
        if end == -1:
            break
        try:
            path = parse_open_tag(text[idx : end + 1]).path
        except TagSyntaxError:
            path = _guess_path(text[idx : end + 1])
        if path and path not in paths:
            paths.append(path)
        pos = end + 1
    return paths


def strip_file_blocks(text: str) -> str:
    """Remove every <sg-file> block (and a dangling unclosed one) from text."""
    parts: list[str] = []
    pos = 0
    while True:
        idx = find_open_marker(text, pos)
        if idx == -1:
            parts.append(text[pos:])
            break
        parts.append(text[pos:idx])
        end = find_tag_end(text, idx + len(OPEN_MARKER))
        if end == -1:
            break
        try:
            parse_open_tag(text[idx : end + 1])
        except TagSyntaxError:
            parts.append(text[idx : end + 1])
            pos = end + 1
            continue
        close = text.find(CLOSE_TAG, end + 1)
        if close == -1:
            break
        pos = close + len(CLOSE_TAG)
    return _BLANK_RUN_RE.sub("\n\n", "".join(parts)).strip()


def trim_body(body: str) -> str:
    """Drop the leading and trailing whitespace runs of a record body."""
    return body.strip()


def decode_html_entities(text: str) -> str:
    for entity, char in _ENTITIES:
        text = text.replace(entity, char)
    return text


def format_record(path: str, body: str, **attributes: str) -> str:
    """Serialise one record; attribute values must not contain '"'."""
    attrs = "".join(f' {name}="{value}"' for name, value in attributes.items() if value is not None)
    return f'<{TAG_NAME} path="{path}"{attrs}>\n{body}\n{CLOSE_TAG}'
