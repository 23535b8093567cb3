"""sdm-kms wiki — browse and edit the concept wiki.

Commands:
  sdm-kms wiki show [TERM]                 — node notes, children, attachments
  sdm-kms wiki expand [TERM]               — AI-generate four child concepts
  sdm-kms wiki add TERM DEF [--parent P]   — add a child entry (--suggest picks P)
  sdm-kms wiki add-topics FILE             — list a document's topics under ROOT
  sdm-kms wiki move TERM --from A --to B   — re-parent an entry
  sdm-kms wiki notes TERM [--text T]       — set notes (--generate from attachments)
  sdm-kms wiki attach TERM FILE            — attach a workspace document to a node
  sdm-kms wiki detach TERM FILE
  sdm-kms wiki export OUTPUT / import INPUT
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from sdm_kms.cli.common import (
    ModelOption,
    WorkspaceOption,
    console,
    load_settings,
    open_workspace,
    require_api_key,
    run,
    spinner,
)
from sdm_kms.cli.errors import (
    err_file_not_found,
    err_generation_failed,
    err_import_failed,
    err_no_files,
    err_node_not_found,
    err_output_path_unsafe,
)
from sdm_kms.generate.render import check_overwrite, validate_output_path
from sdm_kms.generate.tools import StructuredGenerationError
from sdm_kms.models import ROOT
from sdm_kms.snapshot import SnapshotError, export_wiki, import_wiki, load_json, save_json

wiki_app = typer.Typer(
    name="wiki",
    help="Browse and edit the concept wiki.",
    add_completion=False,
)


@wiki_app.command("show")
def wiki_show_cmd(
    term: Annotated[str, typer.Argument(help="Node to show.")] = ROOT,
    workspace: WorkspaceOption = None,
) -> None:
    """Show a wiki node: breadcrumb, notes, child entries and attachments."""
    cfg = load_settings()
    ws, _ = open_workspace(cfg, workspace)
    node = ws.wiki.get(term)
    if node is None:
        console.print(err_node_not_found(term))
        raise typer.Exit(1)

    crumbs = [term]
    parent = ws.wiki.parent_of(term)
    while parent is not None and parent not in crumbs:
        crumbs.insert(0, parent)
        parent = ws.wiki.parent_of(parent)
    console.print(f"[dim]{escape(' › '.join(crumbs))}[/]")

    if node.content:
        console.print(Panel(escape(node.content), title=f"[bold]{escape(term)}[/]", expand=False))

    if node.entries:
        table = Table(show_header=True, header_style="bold", box=None, padding=(0, 1))
        table.add_column("", width=2)
        table.add_column("Term", style="bold")
        table.add_column("Definition")
        table.add_column("Context", style="dim")
        for entry in node.entries:
            mark = "▸" if ws.wiki.is_branch(entry.term) else "·"
            table.add_row(
                mark, escape(entry.term), escape(entry.definition), escape(entry.related_context)
            )
        console.print(table)
    else:
        console.print("[dim]No child entries. Run:  sdm-kms wiki expand " f"{escape(term)}[/]")

    if node.files:
        console.print("\n[bold]Attachments:[/] " + ", ".join(escape(f.name) for f in node.files))


@wiki_app.command("expand")
def wiki_expand_cmd(
    term: Annotated[str, typer.Argument(help="Node to expand.")] = ROOT,
    workspace: WorkspaceOption = None,
    model: ModelOption = None,
) -> None:
    """Generate child concepts for a node from the workspace documents."""
    cfg = load_settings(model)
    ws, ws_path = open_workspace(cfg, workspace)
    if not ws.files:
        console.print(err_no_files())
        raise typer.Exit(1)
    require_api_key(cfg)

    try:
        with spinner(f"Expanding '{term}'…"):
            kept = run(ws.expand_node(term))
    except StructuredGenerationError as exc:
        console.print(err_generation_failed(str(exc)))
        raise typer.Exit(1)

    ws.save(ws_path)
    console.print(f"[green]✓[/] {kept} entr{'y' if kept == 1 else 'ies'} under '{escape(term)}'")


@wiki_app.command("add")
def wiki_add_cmd(
    term: Annotated[str, typer.Argument(help="New term.")],
    definition: Annotated[str, typer.Argument(help="Short definition.")],
    parent: Annotated[
        str,
        typer.Option("--parent", "-p", help="Parent node (unknown parents fall back to ROOT)."),
    ] = ROOT,
    suggest: Annotated[
        bool,
        typer.Option("--suggest", help="Let the model pick the parent from existing nodes."),
    ] = False,
    workspace: WorkspaceOption = None,
    model: ModelOption = None,
) -> None:
    """Add a term to the wiki under a parent node."""
    cfg = load_settings(model)
    ws, ws_path = open_workspace(cfg, workspace)

    if suggest:
        require_api_key(cfg)
        with spinner("Finding a parent…"):
            suggestion = run(ws.suggest_parent(term, definition))
        parent = suggestion.parent
        console.print(
            f"  [dim]Suggested parent:[/] [bold]{escape(parent)}[/]  "
            f"[dim]{escape(suggestion.rationale)}[/]"
        )

    if not ws.wiki.add_manual_entry(term, definition, parent):
        current = ws.wiki.parent_of(term)
        console.print(
            f"[red]Error:[/] '{escape(term)}' cannot be added under '{escape(parent)}'"
            + (f" (already listed under '{escape(current)}')." if current else ".")
            + "\n  Use:  sdm-kms wiki move  to re-parent an existing entry."
        )
        raise typer.Exit(1)

    ws.save(ws_path)
    target = parent if parent in ws.wiki.nodes else ROOT
    console.print(f"[green]✓[/] Added '{escape(term)}' under '{escape(target)}'")


@wiki_app.command("add-topics")
def wiki_add_topics_cmd(
    file: Annotated[str, typer.Argument(help="Document name or id.")],
    workspace: WorkspaceOption = None,
) -> None:
    """List every topic extracted from a document as a top-level wiki entry."""
    cfg = load_settings()
    ws, ws_path = open_workspace(cfg, workspace)
    target = ws.get_file(file)
    if target is None:
        console.print(err_file_not_found(file))
        raise typer.Exit(1)
    if target.processed_data is None or not target.processed_data.topics:
        console.print(f"[yellow]No topics extracted from '{escape(target.name)}'.[/]")
        raise typer.Exit(0)

    added = [t for t in target.processed_data.topics if ws.add_topic_to_wiki(t, target.name)]
    ws.save(ws_path)
    skipped = len(target.processed_data.topics) - len(added)
    console.print(f"[green]✓[/] Added {len(added)} topic(s)" + (f", {skipped} already listed" if skipped else ""))


@wiki_app.command("move")
def wiki_move_cmd(
    term: Annotated[str, typer.Argument(help="Entry to move.")],
    from_parent: Annotated[str, typer.Option("--from", help="Current parent node.")],
    to_parent: Annotated[str, typer.Option("--to", help="New parent node.")],
    workspace: WorkspaceOption = None,
) -> None:
    """Move an entry from one parent node to another."""
    cfg = load_settings()
    ws, ws_path = open_workspace(cfg, workspace)

    source = ws.wiki.get(from_parent)
    entry = next((e for e in source.entries if e.term == term), None) if source else None
    if entry is None:
        console.print(
            f"[red]Error:[/] '{escape(term)}' is not listed under '{escape(from_parent)}'.\n"
            f"  Run:  sdm-kms wiki show {escape(from_parent)}"
        )
        raise typer.Exit(1)

    if not ws.wiki.move_entry(term, entry.definition, from_parent, to_parent):
        console.print(
            f"[red]Error:[/] Cannot move '{escape(term)}' to '{escape(to_parent)}'.\n"
            "  The target already lists it, is the same parent, or sits below the term."
        )
        raise typer.Exit(1)

    ws.save(ws_path)
    console.print(f"[green]✓[/] Moved '{escape(term)}': {escape(from_parent)} → {escape(to_parent)}")


@wiki_app.command("notes")
def wiki_notes_cmd(
    term: Annotated[str, typer.Argument(help="Node to edit.")],
    text: Annotated[
        str | None,
        typer.Option("--text", "-t", help="Replace the node's notes with this text."),
    ] = None,
    generate: Annotated[
        bool,
        typer.Option("--generate", help="Write notes from the node's attached documents."),
    ] = False,
    workspace: WorkspaceOption = None,
    model: ModelOption = None,
) -> None:
    """Set or generate the free-text notes of a wiki node."""
    if (text is None) == (not generate):
        console.print("[red]Error:[/] Pass exactly one of --text or --generate.")
        raise typer.Exit(1)

    cfg = load_settings(model)
    ws, ws_path = open_workspace(cfg, workspace)

    if text is not None:
        ws.wiki.update_notes(term, text)
        ws.save(ws_path)
        console.print(f"[green]✓[/] Notes updated for '{escape(term)}'")
        return

    require_api_key(cfg)
    try:
        with spinner(f"Writing notes for '{term}'…"):
            written = run(ws.populate_node(term))
    except StructuredGenerationError as exc:
        console.print(err_generation_failed(str(exc)))
        raise typer.Exit(1)
    if not written:
        console.print(
            f"[yellow]No documents attached to '{escape(term)}'.[/]\n"
            f"  Run:  sdm-kms wiki attach {escape(term)} FILE"
        )
        raise typer.Exit(1)

    ws.save(ws_path)
    console.print(f"[green]✓[/] Notes generated for '{escape(term)}'")


@wiki_app.command("attach")
def wiki_attach_cmd(
    term: Annotated[str, typer.Argument(help="Node to attach to.")],
    file: Annotated[str, typer.Argument(help="Document name or id.")],
    workspace: WorkspaceOption = None,
) -> None:
    """Attach a workspace document to a wiki node."""
    cfg = load_settings()
    ws, ws_path = open_workspace(cfg, workspace)
    if ws.wiki.get(term) is None:
        console.print(err_node_not_found(term))
        raise typer.Exit(1)
    target = ws.get_file(file)
    if target is None:
        console.print(err_file_not_found(file))
        raise typer.Exit(1)

    ws.wiki.add_attachment(term, target)
    ws.save(ws_path)
    console.print(f"[green]✓[/] Attached '{escape(target.name)}' to '{escape(term)}'")


@wiki_app.command("detach")
def wiki_detach_cmd(
    term: Annotated[str, typer.Argument(help="Node to detach from.")],
    file: Annotated[str, typer.Argument(help="Attachment name or id.")],
    workspace: WorkspaceOption = None,
) -> None:
    """Remove an attachment from a wiki node."""
    cfg = load_settings()
    ws, ws_path = open_workspace(cfg, workspace)
    node = ws.wiki.get(term)
    if node is None:
        console.print(err_node_not_found(term))
        raise typer.Exit(1)

    attached = next((f for f in node.files if f.id == file or f.name == file), None)
    if attached is None or not ws.wiki.remove_attachment(term, attached.id):
        console.print(f"[yellow]'{escape(file)}' is not attached to '{escape(term)}'.[/]")
        raise typer.Exit(0)

    ws.save(ws_path)
    console.print(f"[green]✓[/] Detached '{escape(attached.name)}' from '{escape(term)}'")


@wiki_app.command("export")
def wiki_export_cmd(
    output: Annotated[str, typer.Argument(help="Output JSON file.")],
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Overwrite without asking.")] = False,
    workspace: WorkspaceOption = None,
) -> None:
    """Export the wiki map (nodes only) to a JSON file."""
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
    save_json(output_path, export_wiki(ws.wiki.to_map()))
    console.print(f"[green]✓[/] Exported {len(ws.wiki.nodes)} node(s) → {output_path}")


@wiki_app.command("import")
def wiki_import_cmd(
    source: Annotated[Path, typer.Argument(help="Wiki JSON file to import.")],
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Replace without asking.")] = False,
    workspace: WorkspaceOption = None,
) -> None:
    """Replace the wiki with an exported wiki map."""
    cfg = load_settings()
    ws, ws_path = open_workspace(cfg, workspace)
    try:
        nodes = import_wiki(load_json(source))
    except SnapshotError as exc:
        console.print(err_import_failed(str(source), str(exc)))
        raise typer.Exit(1)

    if not yes and len(ws.wiki.nodes) > 1:
        if not typer.confirm("Replace the current wiki?", default=False):
            console.print("[dim]Cancelled.[/]")
            raise typer.Exit(0)

    ws.wiki.load(nodes)
    ws.save(ws_path)
    console.print(f"[green]✓[/] Imported {len(ws.wiki.nodes)} node(s)")
