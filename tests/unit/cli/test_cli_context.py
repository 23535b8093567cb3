"""Tests for sdm-kms export / import."""

from __future__ import annotations

import json
from pathlib import Path

from typer.testing import CliRunner

from sdm_kms.cli.main import app
from sdm_kms.models import ROOT
from sdm_kms.workspace import Workspace

runner = CliRunner()


def _seed(path: Path, make_file, processed) -> Workspace:
    ws = Workspace()
    ws.add_files([make_file("contract.txt", processed=processed)])
    ws.wiki.add_manual_entry("Supplier", "Acme")
    ws.risks.add_manual("Fire")
    ws.save(path)
    return ws


def test_export_writes_full_snapshot(tmp_path: Path, make_file, processed) -> None:
    ws_path = tmp_path / "kms.json"
    _seed(ws_path, make_file, processed)
    out = tmp_path / "backup.json"

    result = runner.invoke(app, ["export", str(out), "--workspace", str(ws_path)])

    assert result.exit_code == 0, result.output
    doc = json.loads(out.read_text(encoding="utf-8"))
    assert doc["version"] == 2
    assert doc["files"][0]["name"] == "contract.txt"
    assert "Supplier" in doc["wiki"]
    assert doc["riskData"]["risks"][0]["riskDescription"] == "Fire"


def test_export_declines_overwrite(tmp_path: Path, make_file, processed) -> None:
    ws_path = tmp_path / "kms.json"
    _seed(ws_path, make_file, processed)
    out = tmp_path / "backup.json"
    out.write_text("keep", encoding="utf-8")

    result = runner.invoke(app, ["export", str(out), "--workspace", str(ws_path)], input="n\n")

    assert result.exit_code == 0
    assert out.read_text(encoding="utf-8") == "keep"


def test_import_replaces_workspace(tmp_path: Path, make_file, processed) -> None:
    source_ws = tmp_path / "source.json"
    _seed(source_ws, make_file, processed)
    target = tmp_path / "kms.json"

    result = runner.invoke(app, ["import", str(source_ws), "--workspace", str(target)])

    assert result.exit_code == 0, result.output
    ws = Workspace.load(target)
    assert [f.name for f in ws.files] == ["contract.txt"]
    assert ws.wiki.parent_of("Supplier") == ROOT
    assert len(ws.risks.risks) == 1


def test_import_invalid_file_leaves_workspace_untouched(tmp_path: Path, make_file, processed) -> None:
    target = tmp_path / "kms.json"
    _seed(target, make_file, processed)
    before = target.read_text(encoding="utf-8")
    bad = tmp_path / "bad.json"
    bad.write_text(json.dumps({"files": "nope", "wiki": {}}), encoding="utf-8")

    result = runner.invoke(app, ["import", str(bad), "--yes", "--workspace", str(target)])

    assert result.exit_code == 1
    assert "Import failed" in result.output
    assert target.read_text(encoding="utf-8") == before


def test_import_not_json(tmp_path: Path) -> None:
    bad = tmp_path / "bad.json"
    bad.write_text("{oops", encoding="utf-8")
    result = runner.invoke(app, ["import", str(bad), "--workspace", str(tmp_path / "kms.json")])
    assert result.exit_code == 1
