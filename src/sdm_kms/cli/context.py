"""sdm-kms export / import — move a whole workspace between machines.

The exported file is a full snapshot (documents, wiki, risk register).
Import validates the file before touching anything; a rejected file leaves
the current workspace unchanged.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer

from sdm_kms.cli.common import WorkspaceOption, console, load_settings, open_workspace
from sdm_kms.cli.errors import err_import_failed, err_output_path_unsafe
from sdm_kms.generate.render import check_overwrite, validate_output_path
from sdm_kms.snapshot import SnapshotError, load_json, save_json


def export_cmd(
    output: Annotated[str, typer.Argument(help="Snapshot file to write.")],
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Overwrite without asking.")] = False,
    workspace: WorkspaceOption = None,
) -> None:
    """Export the full workspace to a snapshot file."""
    try:
        output_path = validate_output_path(output)
    except ValueError:
        console.print(err_output_path_unsafe(output))
        raise typer.Exit(1)
    if not check_overwrite(output_path, yes=yes):
        console.print("  [dim]Cancelled.[/]")
        raise typer.Exit(0)

    cfg = load_settings()
    ws, _ = open_workspace(cfg, workspace)
    save_json(output_path, ws.to_snapshot())
    console.print(
        f"[green]✓[/] Exported {len(ws.files)} document(s), {len(ws.wiki.nodes)} wiki node(s), "
        f"{len(ws.risks.risks)} risk(s) → {output_path}"
    )


def import_cmd(
    source: Annotated[Path, typer.Argument(help="Snapshot file to import.")],
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Replace without asking.")] = False,
    workspace: WorkspaceOption = None,
) -> None:
    """Replace the workspace with the contents of a snapshot file."""
    cfg = load_settings()
    ws, ws_path = open_workspace(cfg, workspace)

    try:
        doc = load_json(source)
    except SnapshotError as exc:
        console.print(err_import_failed(str(source), str(exc)))
        raise typer.Exit(1)

    if not yes and ws.files:
        if not typer.confirm(
            f"Replace the current workspace ({len(ws.files)} document(s))?", default=False
        ):
            console.print("[dim]Cancelled.[/]")
            raise typer.Exit(0)

    try:
        ws.apply_snapshot(doc)
    except SnapshotError as exc:
        console.print(err_import_failed(str(source), str(exc)))
        raise typer.Exit(1)

    ws.save(ws_path)
    console.print(
        f"[green]✓[/] Imported {len(ws.files)} document(s), {len(ws.wiki.nodes)} wiki node(s), "
        f"{len(ws.risks.risks)} risk(s)"
    )
