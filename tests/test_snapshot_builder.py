"""Tests for core.snapshot.builder."""

import os
import warnings

import pytest

from config.schema import SnapshotConfig
from core.errors import BudgetExceededError, WalkError
from core.protocol.grammar import iter_records
from core.snapshot.builder import collect_files, create_snapshot, format_snapshot, snapshot_stats


def write(root, rel, data):
    path = root / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    if isinstance(data, bytes):
        path.write_bytes(data)
    else:
        path.write_text(data, encoding="utf-8")


@pytest.fixture
def project(tmp_path):
    write(tmp_path, "src/b.ts", "export const b = 2\n")
    write(tmp_path, "src/a.ts", "export const a = 1\n")
    write(tmp_path, "README.md", "# demo\n")
    write(tmp_path, "node_modules/pkg/index.js", "module.exports = 1\n")
    write(tmp_path, ".git/HEAD", "ref: refs/heads/main\n")
    write(tmp_path, "package-lock.json", "{}\n")
    return tmp_path


class TestCollectFiles:
    """Tests for collect_files."""

    def test_sorted_and_default_excludes(self, project):
        paths = [r.path for r in collect_files(project)]
        assert paths == ["README.md", "src/a.ts", "src/b.ts"]

    def test_include_patterns(self, project):
        records = collect_files(project, SnapshotConfig(include=["src/**"]))
        assert [r.path for r in records] == ["src/a.ts", "src/b.ts"]

    def test_extension_filter_drops_without_placeholder(self, project):
        records = collect_files(project, SnapshotConfig(extensions=["md"]))
        assert [r.path for r in records] == ["README.md"]

    def test_custom_exclude(self, project):
        records = collect_files(project, SnapshotConfig(exclude=["src/b.ts"]))
        paths = [r.path for r in records]
        assert "src/b.ts" not in paths
        # Replacing the exclude list drops the default directory vetoes.
        assert "node_modules/pkg/index.js" in paths

    def test_sigrid_metadata_always_excluded(self, tmp_path):
        write(tmp_path, ".sigrid/runtime.json", "{}")
        write(tmp_path, "a.txt", "a")
        records = collect_files(tmp_path, SnapshotConfig(exclude=[]))
        assert [r.path for r in records] == ["a.txt"]

    def test_oversized_file_is_placeholder(self, tmp_path):
        write(tmp_path, "big.txt", "x" * 100)
        write(tmp_path, "small.txt", "x")
        records = {r.path: r for r in collect_files(tmp_path, SnapshotConfig(max_file_size=10))}

        assert records["big.txt"].omitted == "size"
        assert records["big.txt"].size == 100
        assert records["small.txt"].content == "x"

    def test_binary_file_is_placeholder(self, tmp_path):
        write(tmp_path, "img.png", b"\x89PNG\r\n\x1a\n\xff\xfe")
        write(tmp_path, "nul.bin", b"abc\x00def")
        records = {r.path: r for r in collect_files(tmp_path)}

        assert records["img.png"].omitted == "binary"
        assert records["nul.bin"].omitted == "binary"

    def test_gitignore_files_become_placeholders(self, tmp_path):
        write(tmp_path, ".gitignore", "*.log\nsecret/\n")
        write(tmp_path, "app.log", "noise")
        write(tmp_path, "secret/key.txt", "k")
        write(tmp_path, "main.py", "print(1)\n")
        records = {r.path: r for r in collect_files(tmp_path)}

        assert records["app.log"].omitted == "gitignore"
        assert "secret/key.txt" not in records
        assert records["main.py"].content == "print(1)\n"

    def test_nested_gitignore_is_relative_to_its_directory(self, tmp_path):
        write(tmp_path, "pkg/.gitignore", "generated.js\n")
        write(tmp_path, "pkg/generated.js", "x")
        write(tmp_path, "generated.js", "y")
        records = {r.path: r for r in collect_files(tmp_path)}

        assert records["pkg/generated.js"].omitted == "gitignore"
        assert records["generated.js"].content == "y"

    def test_nested_gitignore_can_reinclude(self, tmp_path):
        write(tmp_path, ".gitignore", "*.log\n")
        write(tmp_path, "sub/.gitignore", "!keep.log\n")
        write(tmp_path, "sub/keep.log", "kept")
        write(tmp_path, "sub/drop.log", "dropped")
        records = {r.path: r for r in collect_files(tmp_path)}

        assert records["sub/keep.log"].content == "kept"
        assert records["sub/drop.log"].omitted == "gitignore"

    def test_no_deprecation_warnings(self, tmp_path):
        write(tmp_path, ".gitignore", "*.log\n")
        write(tmp_path, "a.txt", "a")
        with warnings.catch_warnings():
            warnings.simplefilter("error", DeprecationWarning)
            records = collect_files(tmp_path, SnapshotConfig(include=["*.txt"], exclude=["tmp/"]))
        assert [r.path for r in records] == ["a.txt"]

    def test_gitignore_can_be_disabled(self, tmp_path):
        write(tmp_path, ".gitignore", "*.log\n")
        write(tmp_path, "app.log", "noise")
        records = {r.path: r for r in collect_files(tmp_path, SnapshotConfig(respect_gitignore=False))}
        assert records["app.log"].content == "noise"

    def test_symlink_outside_root_skipped(self, tmp_path):
        root = tmp_path / "ws"
        root.mkdir()
        outside = tmp_path / "secret.txt"
        outside.write_text("top secret")
        os.symlink(outside, root / "leak.txt")
        write(root, "ok.txt", "ok")

        assert [r.path for r in collect_files(root)] == ["ok.txt"]

    def test_walk_error(self, tmp_path):
        with pytest.raises(WalkError):
            collect_files(tmp_path / "missing")


class TestCreateSnapshot:
    """Tests for create_snapshot and format_snapshot."""

    def test_framing_parses_back(self, project):
        snapshot = create_snapshot(project)
        records = list(iter_records(snapshot))

        assert [r.path for r in records] == ["README.md", "src/a.ts", "src/b.ts"]
        assert records[1].body.strip() == "export const a = 1"

    def test_deterministic(self, project):
        assert create_snapshot(project) == create_snapshot(project)

    def test_does_not_observe_later_writes(self, project):
        snapshot = create_snapshot(project)
        write(project, "src/c.ts", "late")
        assert "src/c.ts" not in snapshot

    def test_placeholder_record(self, tmp_path):
        write(tmp_path, "big.txt", "x" * 100)
        snapshot = create_snapshot(tmp_path, SnapshotConfig(max_file_size=10))

        assert 'path="big.txt" omitted="size"' in snapshot
        assert "File contents excluded from context (exceeds max size: 100 bytes)" in snapshot
        assert "x" * 100 not in snapshot

    def test_placeholders_can_be_dropped(self, tmp_path):
        write(tmp_path, "big.txt", "x" * 100)
        write(tmp_path, "a.txt", "a")
        snapshot = create_snapshot(tmp_path, SnapshotConfig(max_file_size=10, include_placeholders=False))
        assert "big.txt" not in snapshot
        assert 'path="a.txt"' in snapshot

    def test_budget_exceeded(self, tmp_path):
        write(tmp_path, "a.txt", "x" * 50)
        write(tmp_path, "b.txt", "x" * 50)
        with pytest.raises(BudgetExceededError) as exc:
            create_snapshot(tmp_path, SnapshotConfig(max_total_bytes=60))
        assert exc.value.total_bytes == 100

    def test_empty_workspace(self, tmp_path):
        assert create_snapshot(tmp_path) == ""

    def test_stats(self, tmp_path):
        write(tmp_path, "a.txt", "abc")
        write(tmp_path, "b.bin", b"\xff\xfe")
        stats = snapshot_stats(collect_files(tmp_path))
        assert (stats.files, stats.placeholders, stats.body_bytes) == (1, 1, 3)

    def test_format_snapshot_separates_records(self, tmp_path):
        write(tmp_path, "a.txt", "A")
        write(tmp_path, "b.txt", "B")
        text = format_snapshot(collect_files(tmp_path))
        assert text == '<sg-file path="a.txt">\nA\n</sg-file>\n\n<sg-file path="b.txt">\nB\n</sg-file>'
