"""sdm-kms status — workspace overview.

Shows the model in use, the document library with extraction state, and
wiki / risk register totals.
"""

from __future__ import annotations

from typing import Annotated

import typer
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from sdm_kms.cli.common import WorkspaceOption, console, load_settings, open_workspace
from sdm_kms.config import KmsConfig
from sdm_kms.ingest.aggregator import FAILURE_SUMMARY
from sdm_kms.models import ROOT, LocalFile
from sdm_kms.workspace import Workspace


def status_cmd(
    workspace: WorkspaceOption = None,
    detail: Annotated[
        str | None,
        typer.Option("--file", "-f", help="Show the extracted record for one file."),
    ] = None,
) -> None:
    """Show the documents, wiki and risk register in the workspace."""
    cfg = load_settings()
    ws, ws_path = open_workspace(cfg, workspace)

    if detail:
        file = ws.get_file(detail)
        if file is None:
            console.print(f"[yellow]File not found:[/] '{detail}'")
            raise typer.Exit(1)
        _show_file_detail(file)
        return

    _show_project_panel(cfg, str(ws_path), ws_path.exists())
    _show_files_panel(ws.files)
    _show_knowledge_panel(ws)


# ---------------------------------------------------------------------------
# Panel renderers
# ---------------------------------------------------------------------------


def _show_project_panel(cfg: KmsConfig, path: str, exists: bool) -> None:
    state = "" if exists else " [dim](new)[/]"
    lines = [
        f"Model:      [bold]{cfg.model}[/]",
        f"Workspace:  {path}{state}",
    ]
    console.print(Panel("\n".join(lines), title="[bold]Project[/]", expand=False))


def _show_files_panel(files: list[LocalFile]) -> None:
    if not files:
        console.print(
            Panel(
                "[dim]No documents yet.[/]\n"
                "  Run:  sdm-kms ingest PATH",
                title="[bold]Documents[/]",
                expand=False,
            )
        )
        return

    table = Table(show_header=True, header_style="bold", box=None, padding=(0, 1))
    table.add_column("", width=2)
    table.add_column("Name")
    table.add_column("Type", style="dim")
    table.add_column("Size", justify="right")
    table.add_column("Topics", justify="right")
    table.add_column("Risks", justify="right")

    for f in files:
        record = f.processed_data
        if record is None:
            mark, topics, risks = "[yellow]…[/]", "-", "-"
        elif f.summary == FAILURE_SUMMARY:
            mark, topics, risks = "[red]✗[/]", "-", "-"
        else:
            mark, topics, risks = "[green]✓[/]", str(len(record.topics)), str(len(record.risks))
        table.add_row(mark, f.name, f.type, _human_size(f.size), topics, risks)

    done = sum(1 for f in files if f.processed_data is not None and f.summary != FAILURE_SUMMARY)
    console.print(
        Panel(
            table,
            title=f"[bold]Documents[/] [dim]({done}/{len(files)} analysed)[/]",
            expand=False,
        )
    )


def _show_knowledge_panel(ws: Workspace) -> None:
    root = ws.wiki.get(ROOT)
    top_level = len(root.entries) if root else 0
    lines = [
        f"Wiki nodes:  [bold]{len(ws.wiki.nodes)}[/]  |  Top-level concepts: [bold]{top_level}[/]",
        f"Risks:       [bold]{len(ws.risks.risks)}[/]  |  Gap items: "
        f"[bold]{len(ws.risks.data.gap_analysis)}[/]",
    ]
    console.print(Panel("\n".join(lines), title="[bold]Knowledge[/]", expand=False))


def _show_file_detail(file: LocalFile) -> None:
    record = file.processed_data
    if record is None:
        console.print(f"[yellow]{file.name}[/] has not been analysed yet.")
        return
    lines = [f"[bold]Summary:[/] {record.summary or '(none)'}"]
    if record.topics:
        lines.append(f"[bold]Topics:[/] {', '.join(record.topics)}")
    if record.entities:
        lines.append(f"[bold]Entities:[/] {', '.join(record.entities)}")
    if record.key_points:
        lines.append("[bold]Key points:[/]")
        lines += [f"  • {p}" for p in record.key_points]
    if record.risks:
        lines.append("[bold]Risks:[/]")
        for r in record.risks:
            tag = escape(f"[{r.category or 'General'}]")
            lines.append(f"  • {tag} {escape(r.risk)}")
    console.print(Panel("\n".join(lines), title=f"[bold]{file.name}[/]", expand=False))


def _human_size(size: int) -> str:
    if size < 1024:
        return f"{size} B"
    if size < 1024 * 1024:
        return f"{size / 1024:.1f} KB"
    return f"{size / (1024 * 1024):.1f} MB"
