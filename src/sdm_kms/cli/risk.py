"""sdm-kms risk — the 5×5 risk register.

Workflow:
  sdm-kms risk from-library            # seed from risks found during ingestion
  sdm-kms risk draft -o draft.md       # AI top-10 list for review
  sdm-kms risk finalize draft.md       # score the reviewed list + gap analysis
  sdm-kms risk list / update / add / export

AI-scored items are appended; existing items are never removed.
"""

from __future__ import annotations

from dataclasses import replace
from pathlib import Path
from typing import Annotated

import typer
from rich.markup import escape
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
    err_no_files,
    err_output_path_unsafe,
    err_risk_not_found,
)
from sdm_kms.generate.render import (
    check_overwrite,
    render_risk_register,
    validate_output_path,
    write_output,
)
from sdm_kms.generate.tools import StructuredGenerationError
from sdm_kms.risk.register import DEFAULT_CATEGORY, DEFAULT_MITIGATION

risk_app = typer.Typer(
    name="risk",
    help="Build and score the risk register.",
    add_completion=False,
)


@risk_app.command("list")
def risk_list_cmd(workspace: WorkspaceOption = None) -> None:
    """Show the register, highest score first, plus the gap analysis."""
    cfg = load_settings()
    ws, _ = open_workspace(cfg, workspace)
    risks = ws.risks.sorted_by_score()
    if not risks:
        console.print(
            "[yellow]The risk register is empty.[/]\n"
            "  Run:  sdm-kms risk from-library  or  sdm-kms risk draft"
        )
        raise typer.Exit(0)

    table = Table(title="Risk Register", show_header=True, header_style="bold")
    table.add_column("Id", style="dim")
    table.add_column("Score", justify="right")
    table.add_column("P", justify="right")
    table.add_column("I", justify="right")
    table.add_column("Category")
    table.add_column("Risk")
    table.add_column("Mitigation")
    table.add_column("Source", style="dim")
    for r in risks:
        table.add_row(
            r.id[:8],
            _score_cell(r.score),
            str(r.probability),
            str(r.impact),
            escape(r.category),
            escape(r.risk_description),
            escape(r.mitigation_strategy),
            escape(r.source),
        )
    console.print(table)

    if ws.risks.data.gap_analysis:
        console.print("\n[bold]Gap analysis[/]")
        for gap in ws.risks.data.gap_analysis:
            console.print(f"  • {escape(gap)}")


@risk_app.command("add")
def risk_add_cmd(
    description: Annotated[str, typer.Argument(help="Risk description.")],
    category: Annotated[str, typer.Option("--category", "-c")] = DEFAULT_CATEGORY,
    probability: Annotated[int, typer.Option("--probability", "-p", min=1, max=5, clamp=True)] = 3,
    impact: Annotated[int, typer.Option("--impact", "-i", min=1, max=5, clamp=True)] = 3,
    mitigation: Annotated[str, typer.Option("--mitigation")] = DEFAULT_MITIGATION,
    workspace: WorkspaceOption = None,
) -> None:
    """Add a risk by hand."""
    cfg = load_settings()
    ws, ws_path = open_workspace(cfg, workspace)
    item = ws.risks.add_manual(description, category, probability, impact, mitigation)
    ws.save(ws_path)
    console.print(f"[green]✓[/] Added risk {item.id[:8]} (score {item.score})")


@risk_app.command("from-library")
def risk_from_library_cmd(
    file: Annotated[
        list[str] | None,
        typer.Option("--file", "-f", help="Only this document (repeatable)."),
    ] = None,
    workspace: WorkspaceOption = None,
) -> None:
    """Add every risk extracted during ingestion at medium (3 × 3) scoring."""
    cfg = load_settings()
    ws, ws_path = open_workspace(cfg, workspace)

    files = ws.files
    if file:
        files = []
        for key in file:
            target = ws.get_file(key)
            if target is None:
                console.print(err_file_not_found(key))
                raise typer.Exit(1)
            files.append(target)

    mentions = ws.extracted_risks(files)
    if not mentions:
        console.print("[yellow]No extracted risks found.[/] Run:  sdm-kms ingest PATH")
        raise typer.Exit(0)

    added = ws.risks.add_bulk(mentions)
    ws.save(ws_path)
    console.print(f"[green]✓[/] Added {len(added)} risk(s) from the document library")


@risk_app.command("draft")
def risk_draft_cmd(
    output: Annotated[
        str | None,
        typer.Option("--output", "-o", help="Write the draft list to this file for editing."),
    ] = None,
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Overwrite without asking.")] = False,
    workspace: WorkspaceOption = None,
    model: ModelOption = None,
) -> None:
    """Draft a top-10 risk list from the documents for review."""
    output_path = None
    if output:
        try:
            output_path = validate_output_path(output)
        except ValueError:
            console.print(err_output_path_unsafe(output))
            raise typer.Exit(1)
        if not check_overwrite(output_path, yes=yes):
            console.print("  [dim]Cancelled.[/]")
            raise typer.Exit(0)

    cfg = load_settings(model)
    ws, _ = open_workspace(cfg, workspace)
    if not ws.files:
        console.print(err_no_files())
        raise typer.Exit(1)
    require_api_key(cfg)

    try:
        with spinner("Drafting risks…"):
            draft = run(ws.generator.draft_risks(ws.files))
    except StructuredGenerationError as exc:
        console.print(err_generation_failed(str(exc)))
        raise typer.Exit(1)

    if output_path is None:
        console.print(escape(draft))
        return
    write_output(output_path, draft.rstrip() + "\n")
    console.print(f"[green]✓[/] Draft saved → {output_path}")
    console.print(f"  Review it, then run:  sdm-kms risk finalize {output}")


@risk_app.command("finalize")
def risk_finalize_cmd(
    draft: Annotated[Path, typer.Argument(help="Reviewed risk list (one risk per line).")],
    workspace: WorkspaceOption = None,
    model: ModelOption = None,
) -> None:
    """Score a reviewed risk list and append it to the register with a gap analysis."""
    try:
        draft_text = draft.read_text(encoding="utf-8")
    except OSError as exc:
        console.print(f"[red]Error:[/] Cannot read '{draft}': {exc}")
        raise typer.Exit(1)
    if not draft_text.strip():
        console.print(f"[red]Error:[/] '{draft}' is empty.")
        raise typer.Exit(1)

    cfg = load_settings(model)
    ws, ws_path = open_workspace(cfg, workspace)
    require_api_key(cfg)

    try:
        with spinner("Scoring risks…"):
            analysis = run(ws.finalize_risks(draft_text))
    except StructuredGenerationError as exc:
        console.print(err_generation_failed(str(exc)))
        raise typer.Exit(1)

    ws.save(ws_path)
    console.print(
        f"[green]✓[/] Added {len(analysis.risks)} scored risk(s), "
        f"{len(analysis.gap_analysis)} gap item(s)"
    )


@risk_app.command("update")
def risk_update_cmd(
    risk_id: Annotated[str, typer.Argument(help="Risk id (or unique prefix).")],
    probability: Annotated[int | None, typer.Option("--probability", "-p", min=1, max=5, clamp=True)] = None,
    impact: Annotated[int | None, typer.Option("--impact", "-i", min=1, max=5, clamp=True)] = None,
    category: Annotated[str | None, typer.Option("--category", "-c")] = None,
    description: Annotated[str | None, typer.Option("--description", "-d")] = None,
    mitigation: Annotated[str | None, typer.Option("--mitigation")] = None,
    workspace: WorkspaceOption = None,
) -> None:
    """Edit fields of one risk."""
    cfg = load_settings()
    ws, ws_path = open_workspace(cfg, workspace)

    matches = [r for r in ws.risks.risks if r.id.startswith(risk_id)]
    if len(matches) != 1:
        console.print(err_risk_not_found(risk_id))
        raise typer.Exit(1)
    current = matches[0]

    changes = {
        "probability": probability,
        "impact": impact,
        "category": category,
        "risk_description": description,
        "mitigation_strategy": mitigation,
    }
    updated = replace(current, **{k: v for k, v in changes.items() if v is not None})
    ws.risks.update(updated)
    ws.save(ws_path)
    console.print(f"[green]✓[/] Updated {current.id[:8]} (score {updated.score})")


@risk_app.command("export")
def risk_export_cmd(
    output: Annotated[str, typer.Argument(help="Output Markdown file.")],
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Overwrite without asking.")] = False,
    workspace: WorkspaceOption = None,
) -> None:
    """Write the register as a Markdown table."""
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
    write_output(
        output_path,
        "# Risk Register\n\n"
        + render_risk_register(ws.risks.sorted_by_score(), ws.risks.data.gap_analysis),
    )
    console.print(f"[green]✓[/] Risk register saved → {output_path}")


def _score_cell(score: int) -> str:
    if score >= 15:
        return f"[red bold]{score}[/]"
    if score >= 8:
        return f"[yellow]{score}[/]"
    return f"[green]{score}[/]"
