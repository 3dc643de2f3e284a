"""Tests for core.protocol.deserializer (final file-write application)."""

import asyncio
import os

import pytest

from core.errors import ErrorKind
from core.filesystem.backend import FileDeleteResult, FileSystemBackend, FileWriteResult
from core.protocol.deserializer import apply_file_writes, parse_file_writes
from core.protocol.grammar import FileAction


class FailingBackend(FileSystemBackend):
    """Fails every write to a file named fail*."""

    def __init__(self):
        self.writes = []

    def write_file(self, path, content):
        if os.path.basename(path).startswith("fail"):
            return FileWriteResult(success=False, error="disk full")
        self.writes.append(path)
        return FileWriteResult(success=True, size=len(content.encode()))

    def delete_file(self, path):
        return FileDeleteResult(success=True, existed=False)


class TestParseFileWrites:
    """Tests for parse_file_writes."""

    def test_parses_in_source_order(self):
        writes, errors = parse_file_writes(
            '<sg-file path="b.txt" summary="B">\nB\n</sg-file><sg-file path="a.txt" action="delete"></sg-file>'
        )
        assert errors == []
        assert [(w.path, w.action, w.body, w.summary) for w in writes] == [
            ("b.txt", FileAction.WRITE, "B", "B"),
            ("a.txt", FileAction.DELETE, "", None),
        ]

    def test_placeholder_rejected(self):
        writes, errors = parse_file_writes('<sg-file path="big.bin" omitted="size">// excluded</sg-file>')
        assert writes == []
        assert errors[0].kind is ErrorKind.PARSE_ERROR
        assert errors[0].path == "big.bin"

    def test_malformed_record_is_parse_error(self):
        writes, errors = parse_file_writes('<sg-file path="a" action="move">x</sg-file><sg-file path="b">y</sg-file>')
        assert [w.path for w in writes] == ["b"]
        assert [(e.kind, e.path) for e in errors] == [(ErrorKind.PARSE_ERROR, "a")]

    def test_unclosed_record_is_parse_error(self):
        writes, errors = parse_file_writes('<sg-file path="a">ok</sg-file><sg-file path="b">trunc')
        assert [w.path for w in writes] == ["a"]
        assert errors[0].path == "b"


class TestApplyFileWrites:
    """Tests for apply_file_writes."""

    @pytest.mark.asyncio
    async def test_simple_write(self, tmp_path):
        result = await apply_file_writes(tmp_path, '<sg-file path="src/util.ts">export const x=1\n</sg-file>')

        assert [(f.path, f.size) for f in result.written] == [("src/util.ts", 16)]
        assert (tmp_path / "src" / "util.ts").read_text() == "export const x=1"
        assert result.errors == []

    @pytest.mark.asyncio
    async def test_bare_tag_in_prose_keeps_following_record(self, tmp_path):
        content = 'I will emit the change as an <sg-file> record below.\n<sg-file path="a.txt">A</sg-file>\nDone.'
        result = await apply_file_writes(tmp_path, content)

        assert [f.path for f in result.written] == ["a.txt"]
        assert (tmp_path / "a.txt").read_text() == "A"
        assert [e.kind for e in result.errors] == [ErrorKind.PARSE_ERROR]

    @pytest.mark.asyncio
    async def test_escape_attempt(self, tmp_path):
        root = tmp_path / "ws"
        root.mkdir()
        result = await apply_file_writes(root, '<sg-file path="../outside.txt">bad</sg-file>')

        assert result.written == []
        assert not (tmp_path / "outside.txt").exists()
        assert [e.kind for e in result.errors] == [ErrorKind.PATH_ESCAPE]

    @pytest.mark.asyncio
    async def test_absolute_path_rejected(self, tmp_path):
        result = await apply_file_writes(tmp_path, '<sg-file path="/tmp/x.txt">bad</sg-file>')
        assert result.errors[0].kind is ErrorKind.PATH_ESCAPE

    @pytest.mark.asyncio
    async def test_entities_kept_by_default(self, tmp_path):
        await apply_file_writes(tmp_path, '<sg-file path="a.html">&lt;div&gt;</sg-file>')
        assert (tmp_path / "a.html").read_text() == "&lt;div&gt;"

    @pytest.mark.asyncio
    async def test_entities_decoded_when_enabled(self, tmp_path):
        content = '<sg-file path="a.html">&lt;div&gt;</sg-file><sg-file path="b.txt">&amp;lt;</sg-file>'
        await apply_file_writes(tmp_path, content, decode_entities=True)
        assert (tmp_path / "a.html").read_text() == "<div>"
        assert (tmp_path / "b.txt").read_text() == "&lt;"

    @pytest.mark.asyncio
    async def test_last_record_wins(self, tmp_path):
        content = '<sg-file path="a.txt">one</sg-file><sg-file path="b.txt">b</sg-file><sg-file path="a.txt">two</sg-file>'
        result = await apply_file_writes(tmp_path, content)

        assert (tmp_path / "a.txt").read_text() == "two"
        assert [f.path for f in result.written] == ["b.txt", "a.txt"]

    @pytest.mark.asyncio
    async def test_delete(self, tmp_path):
        (tmp_path / "old.txt").write_text("old")
        content = '<sg-file path="old.txt" action="delete"></sg-file><sg-file path="gone.txt" action="delete"></sg-file>'
        result = await apply_file_writes(tmp_path, content)

        assert not (tmp_path / "old.txt").exists()
        assert result.deleted == ["old.txt"]
        assert result.errors == []

    @pytest.mark.asyncio
    async def test_write_after_delete(self, tmp_path):
        (tmp_path / "a.txt").write_text("old")
        content = '<sg-file path="a.txt" action="delete"></sg-file><sg-file path="a.txt">new</sg-file>'
        result = await apply_file_writes(tmp_path, content)

        assert (tmp_path / "a.txt").read_text() == "new"
        assert result.deleted == []
        assert [f.path for f in result.written] == ["a.txt"]

    @pytest.mark.asyncio
    async def test_write_failure_does_not_abort_batch(self, tmp_path):
        content = '<sg-file path="fail.txt">x</sg-file><sg-file path="ok.txt">y</sg-file>'
        result = await apply_file_writes(tmp_path, content, backend=FailingBackend())

        assert [f.path for f in result.written] == ["ok.txt"]
        assert [(e.kind, e.path) for e in result.errors] == [(ErrorKind.WRITE_FAILURE, "fail.txt")]

    @pytest.mark.asyncio
    async def test_cancel_before_first_record(self, tmp_path):
        cancel = asyncio.Event()
        cancel.set()
        result = await apply_file_writes(tmp_path, '<sg-file path="a.txt">a</sg-file>', cancel_event=cancel)

        assert result.cancelled
        assert result.written == []
        assert not (tmp_path / "a.txt").exists()

    @pytest.mark.asyncio
    async def test_parse_error_count(self, tmp_path):
        result = await apply_file_writes(tmp_path, '<sg-file path="a" omitted="binary">x</sg-file>')
        assert result.parse_error_count == 1
