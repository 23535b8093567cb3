"""Workspace snapshot codec — the only persistence mechanism.

Full snapshot:
  {"version": 2, "timestamp": ISO-8601, "files": [...], "wiki": {...}, "riskData": {...} | null}
Wiki-only export: the bare {name: node} map.

Imports decode into fresh objects and raise SnapshotError before anything is
returned, so a failed import never leaves state half-applied.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from sdm_kms.generate.render import write_output
from sdm_kms.models import LocalFile, RiskAnalysisData, WikiNodeData

SNAPSHOT_VERSION = 2


class SnapshotError(ValueError):
    """Raised when a snapshot or wiki export fails structural validation."""


# ------------------------------------------------------------------
# Full snapshot
# ------------------------------------------------------------------


def export_snapshot(
    files: list[LocalFile],
    wiki: dict[str, WikiNodeData],
    risk_data: RiskAnalysisData | None,
) -> dict[str, Any]:
    return {
        "version": SNAPSHOT_VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "files": [f.to_dict() for f in files],
        "wiki": export_wiki(wiki),
        "riskData": risk_data.to_dict() if risk_data is not None else None,
    }


def import_snapshot(
    doc: Any,
) -> tuple[list[LocalFile], dict[str, WikiNodeData], RiskAnalysisData | None]:
    """Decode a full snapshot.

    Raises:
        SnapshotError: ``files`` is not a list, ``wiki`` is not an object, or
            any record inside them cannot be decoded.
    """
    if not isinstance(doc, dict):
        raise SnapshotError("Invalid context file format: expected a JSON object.")
    if not isinstance(doc.get("files"), list):
        raise SnapshotError("Invalid context file format: 'files' must be an array.")
    if not isinstance(doc.get("wiki"), dict):
        raise SnapshotError("Invalid context file format: 'wiki' must be an object.")

    try:
        files = [LocalFile.from_dict(f) for f in doc["files"]]
    except (KeyError, TypeError, ValueError, AttributeError) as exc:
        raise SnapshotError(f"Invalid file record in context file: {exc}") from exc

    wiki = import_wiki(doc["wiki"])

    risk_raw = doc.get("riskData")
    risk_data: RiskAnalysisData | None = None
    if risk_raw is not None:
        if not isinstance(risk_raw, dict):
            raise SnapshotError("Invalid context file format: 'riskData' must be an object or null.")
        try:
            risk_data = RiskAnalysisData.from_dict(risk_raw)
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            raise SnapshotError(f"Invalid risk register in context file: {exc}") from exc

    return files, wiki, risk_data


# ------------------------------------------------------------------
# Wiki-only
# ------------------------------------------------------------------


def export_wiki(wiki: dict[str, WikiNodeData]) -> dict[str, Any]:
    return {term: node.to_dict() for term, node in wiki.items()}


def import_wiki(doc: Any) -> dict[str, WikiNodeData]:
    """Decode a bare wiki map.

    Raises:
        SnapshotError: *doc* is not an object of node objects.
    """
    if not isinstance(doc, dict):
        raise SnapshotError("Invalid wiki structure: expected a JSON object of nodes.")
    nodes: dict[str, WikiNodeData] = {}
    for term, raw in doc.items():
        if not isinstance(raw, dict):
            raise SnapshotError(f"Invalid wiki node '{term}': expected an object.")
        try:
            nodes[str(term)] = WikiNodeData.from_dict(raw)
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            raise SnapshotError(f"Invalid wiki node '{term}': {exc}") from exc
    return nodes


# ------------------------------------------------------------------
# File I/O
# ------------------------------------------------------------------


def load_json(path: Path) -> Any:
    """Read and parse *path*.

    Raises:
        SnapshotError: The file is missing, unreadable or not JSON.
    """
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise SnapshotError(f"Cannot read '{path}': {exc}") from exc
    except json.JSONDecodeError as exc:
        raise SnapshotError(f"'{path}' is not valid JSON: {exc}") from exc


def save_json(path: Path, doc: Any) -> None:
    """Write *doc* to *path* atomically."""
    write_output(path, json.dumps(doc, indent=2, ensure_ascii=False))
