"""Markdown rendering and safe output writing for generated documents.

Responsibilities:
  1. Render ReportData / EmailDraft / the risk register as Markdown.
  2. Validate output paths: relative paths are confined to CWD.
  3. Overwrite protection (``--yes`` skips the prompt).
  4. Atomic write (temp file → rename).
"""

from __future__ import annotations

import os
import tempfile
from pathlib import Path

import typer

from sdm_kms.models import EmailDraft, ReportData, RiskItem

# ------------------------------------------------------------------
# Markdown
# ------------------------------------------------------------------


def render_report(report: ReportData) -> str:
    lines = [f"# {report.title}", "", "## Executive Summary", "", report.executive_summary, ""]
    if report.key_findings:
        lines += ["## Key Findings", ""]
        lines += [f"- {finding}" for finding in report.key_findings]
        lines.append("")
    for section in report.sections:
        lines += [f"## {section.heading}", "", section.content, ""]
    if report.conclusion:
        lines += ["## Conclusion", "", report.conclusion, ""]
    return "\n".join(lines)


def render_email(draft: EmailDraft) -> str:
    text = f"Subject: {draft.subject}\n\n{draft.body.rstrip()}\n"
    if draft.tone_analysis:
        text += f"\n---\n\n_Tone analysis:_ {draft.tone_analysis}\n"
    return text


def render_risk_register(risks: list[RiskItem], gap_analysis: list[str]) -> str:
    lines = [
        "| Score | P | I | Category | Risk | Mitigation | Source |",
        "|------:|--:|--:|----------|------|------------|--------|",
    ]
    for r in risks:
        lines.append(
            f"| {r.score} | {r.probability} | {r.impact} | {_cell(r.category)} | "
            f"{_cell(r.risk_description)} | {_cell(r.mitigation_strategy)} | {_cell(r.source)} |"
        )
    if gap_analysis:
        lines += ["", "## Gap Analysis", ""]
        lines += [f"- {gap}" for gap in gap_analysis]
    return "\n".join(lines) + "\n"


def _cell(text: str) -> str:
    return text.replace("|", "\\|").replace("\n", " ")


# ------------------------------------------------------------------
# Path validation
# ------------------------------------------------------------------


def validate_output_path(output: str, allowed_base: Path | None = None) -> Path:
    """Normalize *output*; relative paths may not escape *allowed_base* (CWD).

    Raises:
        ValueError: If a relative path resolves outside the allowed base.
    """
    path = Path(output)
    if path.is_absolute():
        return path.resolve()

    base = (allowed_base or Path.cwd()).resolve()
    resolved = (base / path).resolve()
    try:
        resolved.relative_to(base)
    except ValueError:
        raise ValueError(
            f"Output path '{output}' resolves outside the allowed directory "
            f"('{base}'). Path traversal is not permitted."
        )
    return resolved


def check_overwrite(path: Path, yes: bool) -> bool:
    """True if writing may proceed; asks before replacing an existing file."""
    if yes or not path.exists():
        return True
    return typer.confirm(f"  File exists: {path.name}\n  Overwrite?", default=False)


def write_output(path: Path, content: str) -> None:
    """Write *content* to *path* atomically; parent directories are created."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(dir=path.parent, suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
        os.replace(tmp_path, path)
    except Exception:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise
