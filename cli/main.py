#!/usr/bin/env python3
"""
sigrid CLI

Commands:
- run: one static-context turn against a directory
- snapshot: print the snapshot a turn would send
- compact: compact a stored conversation
- export: write the workspace as a tar.gz archive
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from config.loader import load_settings
from config.schema import PersistenceConfig, SigridSettings
from core.errors import SigridError
from core.events import ProgressEvent
from core.static.options import ExecuteOptions
from storage.container import create_conversation_store
from workspace import open_workspace

console = Console()
err_console = Console(stderr=True)


def setup_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
    )


def _settings_for(args: argparse.Namespace) -> SigridSettings:
    overrides: dict[str, Any] = {}
    if getattr(args, "model", None):
        overrides["llm"] = {"model": args.model}
    if getattr(args, "store", None):
        overrides["persistence"] = {"backend": "filesystem", "directory": args.store}
    return load_settings(args.workspace, overrides or None)


def _progress_printer(event: ProgressEvent, data: dict[str, Any] | None) -> None:
    if not data:
        return
    if event is ProgressEvent.FILE_STREAMING_START:
        err_console.print(f"[cyan]→ {data['path']}[/cyan]")
    elif event is ProgressEvent.FILES_WRITTEN:
        err_console.print(f"[green]{data['count']} file(s) written[/green]")


async def cmd_run(args: argparse.Namespace) -> int:
    """Run one turn and print the reply"""
    settings = _settings_for(args)
    workspace = open_workspace(args.workspace, settings=settings)
    prompt = args.prompt if args.prompt != "-" else sys.stdin.read()

    store = None
    if args.conversation or args.conversation_id:
        persistence = settings.persistence
        if persistence.backend == "memory":
            # A process-local store cannot continue anything across CLI runs.
            persistence = PersistenceConfig(backend="filesystem", directory=persistence.directory)
        store = create_conversation_store(persistence)

    options = ExecuteOptions(
        model=args.model,
        conversation=args.conversation,
        conversation_id=args.conversation_id,
        conversation_persistence=store,
        stream=args.stream or settings.execution.stream,
        stream_callback=(lambda chunk: console.print(chunk, end="", markup=False, highlight=False)) if args.stream else None,
        progress_callback=_progress_printer,
        reasoning_effort=settings.llm.reasoning_effort,
        temperature=settings.llm.temperature,
        decode_html_entities=args.decode_entities or settings.execution.decode_html_entities,
    )
    result = await workspace.execute(prompt, options)

    if not args.stream and result.content:
        console.print(result.content, markup=False, highlight=False)
    elif args.stream:
        console.print()

    if result.files_written or result.files_deleted:
        table = Table(title="Files")
        table.add_column("Path", style="cyan")
        table.add_column("Change", style="magenta")
        table.add_column("Bytes", justify="right")
        for f in result.files_written:
            table.add_row(f.path, "write", str(f.size))
        for path in result.files_deleted:
            table.add_row(path, "delete", "")
        err_console.print(table)
    for error in result.errors:
        err_console.print(f"[red]{error.kind}[/red] {error.path or '?'}: {error.message}")
    if result.conversation_id:
        err_console.print(f"[dim]conversation: {result.conversation_id}[/dim]")
    return 1 if result.errors else 0


async def cmd_snapshot(args: argparse.Namespace) -> int:
    """Print the workspace snapshot"""
    settings = _settings_for(args)
    workspace = open_workspace(args.workspace, settings=settings)
    snapshot = await workspace.snapshot()
    sys.stdout.write(snapshot)
    if snapshot and not snapshot.endswith("\n"):
        sys.stdout.write("\n")
    return 0


async def cmd_compact(args: argparse.Namespace) -> int:
    """Compact a stored conversation"""
    settings = _settings_for(args)
    store = create_conversation_store(PersistenceConfig(backend="filesystem", directory=settings.persistence.directory))
    workspace = open_workspace(args.workspace, settings=settings)
    report = await workspace.compact_history(args.conversation_id, store, dry_run=args.dry_run)

    table = Table(title="Compaction (dry run)" if args.dry_run else "Compaction")
    table.add_column("", style="cyan")
    table.add_column("Before", justify="right")
    table.add_column("After", justify="right")
    table.add_row("chars", str(report.original_chars), str(report.compacted_chars))
    table.add_row("tokens", str(report.original_tokens), str(report.compacted_tokens))
    console.print(table)
    console.print(
        f"{report.messages_compacted}/{report.messages_processed} messages compacted, reduction {report.reduction}"
    )
    return 0


async def cmd_export(args: argparse.Namespace) -> int:
    """Write the workspace archive"""
    workspace = open_workspace(args.workspace, settings=_settings_for(args))
    data = await workspace.export()
    Path(args.output).write_bytes(data)
    err_console.print(f"[green]Wrote {len(data)} bytes to {args.output}[/green]")
    return 0


COMMANDS = {
    "run": cmd_run,
    "snapshot": cmd_snapshot,
    "compact": cmd_compact,
    "export": cmd_export,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="sigrid", description="sigrid - static-context code generation")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    def add_common(p: argparse.ArgumentParser) -> None:
        p.add_argument("-w", "--workspace", default=".", help="Workspace directory (default: .)")
        p.add_argument("--store", help="Conversation store directory (filesystem backend)")

    run = sub.add_parser("run", help="Run one static-context turn")
    add_common(run)
    run.add_argument("prompt", help='Prompt text, or "-" to read from stdin')
    run.add_argument("--model", help="Model name (overrides settings)")
    run.add_argument("--stream", action="store_true", help="Stream the reply")
    run.add_argument("-c", "--conversation", action="store_true", help="Start a persisted conversation")
    run.add_argument("--conversation-id", help="Continue a persisted conversation")
    run.add_argument("--decode-entities", action="store_true", help="Decode HTML entities in file bodies")

    snapshot = sub.add_parser("snapshot", help="Print the workspace snapshot")
    add_common(snapshot)

    compact = sub.add_parser("compact", help="Compact a stored conversation")
    add_common(compact)
    compact.add_argument("conversation_id", help="Conversation id")
    compact.add_argument("--dry-run", action="store_true", help="Report without rewriting")

    export = sub.add_parser("export", help="Export the workspace as tar.gz")
    add_common(export)
    export.add_argument("-o", "--output", required=True, help="Archive path")

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.verbose)
    try:
        return asyncio.run(COMMANDS[args.command](args))
    except SigridError as e:
        err_console.print(f"[red]Error:[/red] {e}")
        return 2
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
