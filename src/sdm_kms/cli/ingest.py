"""sdm-kms ingest / remove — manage the document library.

Usage:
  sdm-kms ingest docs/ contract.pdf --recursive
  sdm-kms ingest --retry              # re-run extraction for pending files
  sdm-kms remove contract.pdf --yes

Each file is extracted once, in order. A failed extraction never drops the
file: it is kept with an "Analysis failed." record and can be retried.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn

from sdm_kms.cli.common import (
    ModelOption,
    WorkspaceOption,
    console,
    load_settings,
    open_workspace,
    require_api_key,
    run,
)
from sdm_kms.cli.errors import err_file_not_found, warn_stale_session
from sdm_kms.ingest.aggregator import FAILURE_SUMMARY
from sdm_kms.ingest.loaders import load_paths
from sdm_kms.models import LocalFile, ProcessedData


def ingest_cmd(
    paths: Annotated[
        list[Path] | None,
        typer.Argument(help="Files or directories to add."),
    ] = None,
    recursive: Annotated[
        bool,
        typer.Option("--recursive", "-r", help="Recurse into subdirectories."),
    ] = False,
    pdf_text: Annotated[
        bool,
        typer.Option("--pdf-text", help="Send PDFs as extracted page text instead of inline binary."),
    ] = False,
    no_extract: Annotated[
        bool,
        typer.Option("--no-extract", help="Add files without running extraction."),
    ] = False,
    retry: Annotated[
        bool,
        typer.Option("--retry", help="Re-run extraction for files whose analysis failed or is pending."),
    ] = False,
    workspace: WorkspaceOption = None,
    model: ModelOption = None,
) -> None:
    """Add documents to the workspace and extract their knowledge."""
    cfg = load_settings(model)
    if not paths and not retry:
        console.print("[red]Error:[/] No paths given. Use: sdm-kms ingest PATH [PATH ...]")
        raise typer.Exit(1)

    ws, ws_path = open_workspace(cfg, workspace)

    queue: list[LocalFile] = []
    if paths:
        pdf_mode = "text" if pdf_text else cfg.ingestion.pdf_mode
        result = load_paths(paths, recursive=recursive, pdf_mode=pdf_mode)
        for skipped in result.skipped:
            console.print(f"  [yellow]✗ Skipped[/] {skipped.path}: {skipped.reason}")
        if not result.files:
            console.print("[yellow]No supported files found to ingest.[/]")
            raise typer.Exit(0)
        ws.add_files(result.files)
        queue.extend(result.files)
        console.print(f"[green]✓[/] Added {len(result.files)} file(s)")

    if retry:
        queued = {f.id for f in queue}
        queue.extend(
            f for f in ws.files
            if f.id not in queued and (f.processed_data is None or f.summary == FAILURE_SUMMARY)
        )

    if no_extract or not queue:
        ws.save(ws_path)
        return

    # Added files survive a missing key or an interrupted extraction run.
    ws.save(ws_path)
    require_api_key(cfg)

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        transient=True,
        console=console,
    ) as prog:
        task = prog.add_task("Extracting…", total=len(queue))

        def _on_done(file: LocalFile, record: ProcessedData) -> None:
            prog.advance(task)
            _report(file, record)
            ws.save(ws_path)

        run(ws.ingest_pending(queue, on_progress=_on_done))

    console.print(f"\n[green]✓[/] Processed {len(queue)} file(s) → {ws_path}")


def remove_cmd(
    file: Annotated[str, typer.Argument(help="File name or id to remove.")],
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Skip confirmation prompt."),
    ] = False,
    workspace: WorkspaceOption = None,
) -> None:
    """Remove a document from the workspace."""
    cfg = load_settings()
    ws, ws_path = open_workspace(cfg, workspace)

    target = ws.get_file(file)
    if target is None:
        console.print(err_file_not_found(file))
        raise typer.Exit(0)

    if not yes:
        if not typer.confirm(f"Remove '{target.name}'?", default=False):
            console.print("[dim]Cancelled.[/]")
            raise typer.Exit(0)

    ws.remove_file(target.id)
    ws.save(ws_path)
    console.print(f"[green]✓[/] Removed: {target.name}")
    console.print(f"\n{warn_stale_session()}")


def _report(file: LocalFile, record: ProcessedData) -> None:
    if record.summary == FAILURE_SUMMARY:
        console.print(f"  [red]✗[/] {file.name}: analysis failed (retry with --retry)")
        return
    console.print(
        f"  [green]✓[/] {file.name}  "
        f"[dim]{len(record.topics)} topics · {len(record.risks)} risks · "
        f"{len(record.entities)} entities[/]"
    )
