"""Tests for the sigrid command line front end."""

import io
import tarfile
from unittest.mock import patch

import pytest

from cli.main import build_parser, main
from tests.fakes.transport import ScriptedTransport


@pytest.fixture
def project(tmp_path, monkeypatch):
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    project = tmp_path / "project"
    (project / "src").mkdir(parents=True)
    (project / "src" / "a.ts").write_text("export const a = 1\n")
    return project


class TestParser:
    """Tests for argument wiring."""

    def test_run_arguments(self):
        args = build_parser().parse_args(["run", "do it", "-w", "/x", "--stream", "--conversation-id", "conv_1"])
        assert (args.command, args.prompt, args.workspace) == ("run", "do it", "/x")
        assert args.stream is True
        assert args.conversation_id == "conv_1"
        assert args.conversation is False

    def test_compact_arguments(self):
        args = build_parser().parse_args(["compact", "conv_1", "--dry-run", "--store", "/s"])
        assert (args.conversation_id, args.dry_run, args.store) == ("conv_1", True, "/s")

    def test_command_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])


class TestCommands:
    """Tests for the command handlers."""

    def test_snapshot(self, project, capsys):
        assert main(["snapshot", "-w", str(project)]) == 0
        out = capsys.readouterr().out
        assert '<sg-file path="src/a.ts">' in out

    def test_export(self, project, tmp_path):
        output = tmp_path / "out.tar.gz"
        assert main(["export", "-w", str(project), "-o", str(output)]) == 0
        with tarfile.open(fileobj=io.BytesIO(output.read_bytes()), mode="r:gz") as tar:
            assert "src/a.ts" in tar.getnames()

    def test_run_writes_and_persists(self, project, tmp_path):
        store_dir = tmp_path / "store"
        transport = ScriptedTransport('Done.\n<sg-file path="src/b.ts">export const b = 2</sg-file>')

        with patch("workspace.build_transport", return_value=transport):
            code = main(["run", "add b", "-w", str(project), "-c", "--store", str(store_dir)])

        assert code == 0
        assert (project / "src" / "b.ts").read_text() == "export const b = 2"
        logs = list(store_dir.glob("*.log"))
        assert len(logs) == 1

    def test_run_reports_record_errors(self, project):
        transport = ScriptedTransport('<sg-file path="../escape.txt">x</sg-file>')
        with patch("workspace.build_transport", return_value=transport):
            assert main(["run", "q", "-w", str(project)]) == 1

    def test_compact(self, project, tmp_path, capsys):
        store_dir = tmp_path / "store"
        transport = ScriptedTransport('<sg-file path="src/c.ts">c</sg-file>')
        with patch("workspace.build_transport", return_value=transport):
            main(["run", "add c", "-w", str(project), "-c", "--store", str(store_dir)])
        (log,) = store_dir.glob("*.log")

        assert main(["compact", log.stem, "-w", str(project), "--store", str(store_dir), "--dry-run"]) == 0
        assert "messages compacted" in capsys.readouterr().out

    def test_missing_workspace(self, tmp_path, capsys):
        assert main(["snapshot", "-w", str(tmp_path / "nope")]) == 2
