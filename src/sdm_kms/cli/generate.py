"""sdm-kms report / email — one-shot document generation.

Usage:
  sdm-kms report "Q3 supplier exposure" --audience Board -o out/report.md
  sdm-kms email "Delay on line 2" --points "new ETA, root cause" --directness 80

Flags shared by both:
  --file NAME     Restrict context to these documents (repeatable)
  --output PATH   Write Markdown here; path traversal blocked
  --yes           Skip the overwrite prompt
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.markdown import Markdown

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
)
from sdm_kms.generate.render import (
    check_overwrite,
    render_email,
    render_report,
    validate_output_path,
    write_output,
)
from sdm_kms.generate.tools import EmailTone, StructuredGenerationError
from sdm_kms.models import LocalFile
from sdm_kms.workspace import Workspace

_FileOption = Annotated[
    list[str] | None,
    typer.Option("--file", "-f", help="Only use this document (repeatable)."),
]
_OutputOption = Annotated[
    str | None,
    typer.Option("--output", "-o", help="Write Markdown to this path."),
]
_YesOption = Annotated[bool, typer.Option("--yes", "-y", help="Overwrite without asking.")]


def report_cmd(
    topic: Annotated[str, typer.Argument(help="Report topic.")],
    audience: Annotated[str, typer.Option("--audience", "-a", help="Intended readers.")] = "",
    depth: Annotated[
        str, typer.Option("--depth", help="Detail level, e.g. Brief / Standard / Detailed.")
    ] = "Standard",
    file: _FileOption = None,
    output: _OutputOption = None,
    yes: _YesOption = False,
    workspace: WorkspaceOption = None,
    model: ModelOption = None,
) -> None:
    """Generate a structured report from the workspace documents."""
    output_path = _prepare_output(output, yes)
    cfg = load_settings(model)
    ws, _ = open_workspace(cfg, workspace)
    files = _select_files(ws, file)
    require_api_key(cfg)

    try:
        with spinner("Generating report…"):
            report = run(ws.generator.generate_report(topic, files, audience, depth))
    except StructuredGenerationError as exc:
        console.print(err_generation_failed(str(exc)))
        raise typer.Exit(1)

    _emit(render_report(report), output_path)


def email_cmd(
    subject: Annotated[str, typer.Argument(help="Email subject.")],
    points: Annotated[str, typer.Option("--points", "-p", help="Key points to cover.")] = "",
    directness: Annotated[int, typer.Option("--directness", min=0, max=100, clamp=True)] = 50,
    familiarity: Annotated[int, typer.Option("--familiarity", min=0, max=100, clamp=True)] = 20,
    audience: Annotated[int, typer.Option("--audience", min=0, max=100, clamp=True)] = 50,
    power: Annotated[int, typer.Option("--power", min=0, max=100, clamp=True)] = 50,
    structure: Annotated[int, typer.Option("--structure", min=0, max=100, clamp=True)] = 30,
    culture: Annotated[str, typer.Option("--culture", help="Cultural context.")] = "US/General",
    file: _FileOption = None,
    output: _OutputOption = None,
    yes: _YesOption = False,
    workspace: WorkspaceOption = None,
    model: ModelOption = None,
) -> None:
    """Draft an email grounded in the workspace documents."""
    output_path = _prepare_output(output, yes)
    cfg = load_settings(model)
    ws, _ = open_workspace(cfg, workspace)
    files = _select_files(ws, file)
    require_api_key(cfg)

    tone = EmailTone(
        directness=directness,
        familiarity=familiarity,
        audience=audience,
        power=power,
        structure=structure,
    )
    try:
        with spinner("Drafting email…"):
            draft = run(ws.generator.draft_email(subject, points, files, tone, culture))
    except StructuredGenerationError as exc:
        console.print(err_generation_failed(str(exc)))
        raise typer.Exit(1)

    _emit(render_email(draft), output_path)


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------


def _prepare_output(output: str | None, yes: bool) -> Path | None:
    if output is None:
        return None
    try:
        output_path = validate_output_path(output)
    except ValueError:
        console.print(err_output_path_unsafe(output))
        raise typer.Exit(1)
    if not check_overwrite(output_path, yes=yes):
        console.print("  [dim]Cancelled.[/]")
        raise typer.Exit(0)
    return output_path


def _select_files(ws: Workspace, keys: list[str] | None) -> list[LocalFile]:
    if not ws.files:
        console.print(err_no_files())
        raise typer.Exit(1)
    if not keys:
        return ws.files
    selected: list[LocalFile] = []
    for key in keys:
        target = ws.get_file(key)
        if target is None:
            console.print(err_file_not_found(key))
            raise typer.Exit(1)
        selected.append(target)
    return selected


def _emit(markdown: str, output_path: Path | None) -> None:
    if output_path is None:
        console.print(Markdown(markdown))
        return
    write_output(output_path, markdown)
    console.print(f"[green]✓[/] Saved → {output_path}")
