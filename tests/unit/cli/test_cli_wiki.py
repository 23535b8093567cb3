"""Tests for sdm-kms wiki commands."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest
from typer.testing import CliRunner

from sdm_kms.cli.main import app
from sdm_kms.llm.client import Generation
from sdm_kms.models import ROOT, WikiEntry
from sdm_kms.workspace import Workspace

runner = CliRunner()


@pytest.fixture
def ws_path(tmp_path: Path, make_file, processed) -> Path:
    """ROOT → Power → Battery, one ingested document."""
    ws = Workspace()
    ws.add_files([make_file("contract.txt", processed=processed)])
    ws.wiki.set_entries(ROOT, [WikiEntry("Power", "Energy supply")])
    ws.wiki.set_entries("Power", [WikiEntry("Battery", "Stores energy")])
    path = tmp_path / "kms.json"
    ws.save(path)
    return path


def _invoke(ws_path: Path, *args: str, **kwargs):
    return runner.invoke(app, ["wiki", *args, "--workspace", str(ws_path)], **kwargs)


# ---------------------------------------------------------------------------
# show
# ---------------------------------------------------------------------------


def test_show_root_lists_entries(ws_path: Path) -> None:
    result = _invoke(ws_path, "show")
    assert result.exit_code == 0, result.output
    assert "Power" in result.output
    assert "Energy supply" in result.output


def test_show_breadcrumb(ws_path: Path) -> None:
    result = _invoke(ws_path, "show", "Power")
    assert result.exit_code == 0, result.output
    assert "ROOT › Power" in result.output
    assert "Battery" in result.output


def test_show_unknown_node(ws_path: Path) -> None:
    result = _invoke(ws_path, "show", "Nope")
    assert result.exit_code == 1
    assert "does not exist" in result.output


# ---------------------------------------------------------------------------
# add / add-topics / move
# ---------------------------------------------------------------------------


def test_add_under_parent(ws_path: Path) -> None:
    result = _invoke(ws_path, "add", "Inverter", "DC to AC", "--parent", "Power")
    assert result.exit_code == 0, result.output
    assert Workspace.load(ws_path).wiki.parent_of("Inverter") == "Power"


def test_add_duplicate_is_rejected(ws_path: Path) -> None:
    result = _invoke(ws_path, "add", "Battery", "again", "--parent", ROOT)
    assert result.exit_code == 1
    assert "cannot be added" in result.output


def test_add_with_suggested_parent(ws_path: Path, monkeypatch) -> None:
    monkeypatch.setenv("GEMINI_API_KEY", "test-key")
    reply = Generation(json.dumps({"suggestedParent": "Power", "reasoning": "Energy"}), "stop")
    with patch("sdm_kms.llm.client.generate", AsyncMock(return_value=reply)):
        result = _invoke(ws_path, "add", "Solar", "PV panels", "--suggest")

    assert result.exit_code == 0, result.output
    assert "Suggested parent" in result.output
    assert Workspace.load(ws_path).wiki.parent_of("Solar") == "Power"


def test_add_topics_from_document(ws_path: Path) -> None:
    result = _invoke(ws_path, "add-topics", "contract.txt")
    assert result.exit_code == 0, result.output
    wiki = Workspace.load(ws_path).wiki
    assert wiki.parent_of("Supplier") == ROOT
    assert wiki.parent_of("Penalties") == ROOT


def test_add_topics_unknown_file(ws_path: Path) -> None:
    result = _invoke(ws_path, "add-topics", "ghost.txt")
    assert result.exit_code == 1
    assert "File not found" in result.output


def test_move(ws_path: Path) -> None:
    result = _invoke(ws_path, "move", "Battery", "--from", "Power", "--to", ROOT)
    assert result.exit_code == 0, result.output
    wiki = Workspace.load(ws_path).wiki
    assert wiki.parent_of("Battery") == ROOT
    assert wiki.get(ROOT).entries[-1].related_context == "Moved from Power"


def test_move_into_own_descendant_is_rejected(ws_path: Path) -> None:
    result = _invoke(ws_path, "move", "Power", "--from", ROOT, "--to", "Battery")
    assert result.exit_code == 1
    assert Workspace.load(ws_path).wiki.parent_of("Power") == ROOT


def test_move_wrong_source(ws_path: Path) -> None:
    result = _invoke(ws_path, "move", "Battery", "--from", ROOT, "--to", "Power")
    assert result.exit_code == 1
    assert "is not listed under" in result.output


# ---------------------------------------------------------------------------
# expand / notes / attachments
# ---------------------------------------------------------------------------


def test_expand_requires_documents(tmp_path: Path) -> None:
    result = _invoke(tmp_path / "empty.json", "expand")
    assert result.exit_code == 1
    assert "no documents" in result.output


def test_expand_node(ws_path: Path, monkeypatch) -> None:
    monkeypatch.setenv("GEMINI_API_KEY", "test-key")
    reply = Generation(
        json.dumps({"entries": [{"term": "Cell", "definition": "Unit"}, {"term": "BMS"}]}), "stop"
    )
    with patch("sdm_kms.llm.client.generate", AsyncMock(return_value=reply)):
        result = _invoke(ws_path, "expand", "Battery")

    assert result.exit_code == 0, result.output
    assert "2 entries" in result.output
    assert Workspace.load(ws_path).wiki.parent_of("Cell") == "Battery"


def test_expand_generation_failure(ws_path: Path, monkeypatch) -> None:
    monkeypatch.setenv("GEMINI_API_KEY", "test-key")
    reply = Generation(None, "length")
    with patch("sdm_kms.llm.client.generate", AsyncMock(return_value=reply)):
        result = _invoke(ws_path, "expand")
    assert result.exit_code == 1
    assert "Generation failed" in result.output


def test_notes_text(ws_path: Path) -> None:
    result = _invoke(ws_path, "notes", "Power", "--text", "Grid and storage.")
    assert result.exit_code == 0, result.output
    assert Workspace.load(ws_path).wiki.get("Power").content == "Grid and storage."


def test_notes_requires_exactly_one_mode(ws_path: Path) -> None:
    result = _invoke(ws_path, "notes", "Power")
    assert result.exit_code == 1
    assert "exactly one" in result.output


def test_notes_generate_without_attachments(ws_path: Path, monkeypatch) -> None:
    monkeypatch.setenv("GEMINI_API_KEY", "test-key")
    result = _invoke(ws_path, "notes", "Power", "--generate")
    assert result.exit_code == 1
    assert "No documents attached" in result.output


def test_attach_then_generate_notes(ws_path: Path, monkeypatch) -> None:
    monkeypatch.setenv("GEMINI_API_KEY", "test-key")
    assert _invoke(ws_path, "attach", "Power", "contract.txt").exit_code == 0

    with patch("sdm_kms.llm.client.generate", AsyncMock(return_value=Generation("Expert notes"))):
        result = _invoke(ws_path, "notes", "Power", "--generate")

    assert result.exit_code == 0, result.output
    assert Workspace.load(ws_path).wiki.get("Power").content == "Expert notes"


def test_detach(ws_path: Path) -> None:
    _invoke(ws_path, "attach", "Power", "contract.txt")
    result = _invoke(ws_path, "detach", "Power", "contract.txt")
    assert result.exit_code == 0, result.output
    assert Workspace.load(ws_path).wiki.get("Power").files == []


def test_attach_unknown_node(ws_path: Path) -> None:
    result = _invoke(ws_path, "attach", "Nope", "contract.txt")
    assert result.exit_code == 1


# ---------------------------------------------------------------------------
# export / import
# ---------------------------------------------------------------------------


def test_export_and_import_wiki(ws_path: Path, tmp_path: Path) -> None:
    out = tmp_path / "wiki.json"
    assert _invoke(ws_path, "export", str(out)).exit_code == 0
    assert "Power" in json.loads(out.read_text(encoding="utf-8"))

    target = tmp_path / "other.json"
    result = _invoke(target, "import", str(out))

    assert result.exit_code == 0, result.output
    assert Workspace.load(target).wiki.parent_of("Battery") == "Power"


def test_import_rejects_non_object(ws_path: Path, tmp_path: Path) -> None:
    bad = tmp_path / "bad.json"
    bad.write_text("[1, 2]", encoding="utf-8")
    result = _invoke(ws_path, "import", str(bad), "--yes")
    assert result.exit_code == 1
    assert Workspace.load(ws_path).wiki.parent_of("Battery") == "Power"
