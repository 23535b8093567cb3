"""Tests for the workspace orchestration layer."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from sdm_kms.models import ROOT, ProcessedData, RiskAnalysisData, RiskItem, WikiEntry
from sdm_kms.snapshot import SnapshotError
from sdm_kms.workspace import Workspace


@pytest.fixture
def ws(make_file, processed) -> Workspace:
    workspace = Workspace()
    workspace.add_files(
        [make_file("contract.txt", processed=processed), make_file("minutes.txt")]
    )
    return workspace


# ------------------------------------------------------------------
# Library
# ------------------------------------------------------------------


def test_get_file_by_id_then_name(ws) -> None:
    assert ws.get_file("id-contract.txt").name == "contract.txt"
    assert ws.get_file("minutes.txt").id == "id-minutes.txt"
    assert ws.get_file("missing") is None


def test_remove_file(ws) -> None:
    removed = ws.remove_file("minutes.txt")
    assert removed.name == "minutes.txt"
    assert [f.name for f in ws.files] == ["contract.txt"]
    assert ws.remove_file("minutes.txt") is None


def test_pending_files(ws) -> None:
    assert [f.name for f in ws.pending_files()] == ["minutes.txt"]


@pytest.mark.asyncio
async def test_ingest_file_replaces_record(ws) -> None:
    record = ProcessedData(summary="Minutes of kickoff.", topics=["Kickoff"])
    ws.ingestor.ingest = AsyncMock(return_value=record)
    file = ws.get_file("minutes.txt")

    await ws.ingest_file(file)

    assert file.processed_data is record
    assert file.summary == "Minutes of kickoff."
    assert not file.is_processing


@pytest.mark.asyncio
async def test_ingest_file_clears_processing_flag_on_error(ws) -> None:
    ws.ingestor.ingest = AsyncMock(side_effect=RuntimeError("boom"))
    file = ws.get_file("minutes.txt")

    with pytest.raises(RuntimeError):
        await ws.ingest_file(file)

    assert not file.is_processing
    assert file in ws.files


@pytest.mark.asyncio
async def test_ingest_pending_in_order_with_progress(ws, make_file) -> None:
    ws.add_files([make_file("later.txt")])
    ws.ingestor.ingest = AsyncMock(return_value=ProcessedData(summary="s"))
    seen: list[str] = []

    await ws.ingest_pending(on_progress=lambda f, r: seen.append(f.name))

    assert seen == ["minutes.txt", "later.txt"]
    assert ws.pending_files() == []


# ------------------------------------------------------------------
# Library → tools
# ------------------------------------------------------------------


def test_extracted_risks_are_tagged_with_source(ws) -> None:
    risks = ws.extracted_risks()
    assert [(r.risk, r.source) for r in risks] == [("Late delivery", "contract.txt")]


def test_add_topic_to_wiki(ws) -> None:
    assert ws.add_topic_to_wiki("Penalties", "contract.txt")
    assert ws.wiki.parent_of("Penalties") == ROOT
    assert ws.wiki.get("Penalties").content == "Imported from contract.txt"
    assert not ws.add_topic_to_wiki("Penalties", "contract.txt")


@pytest.mark.asyncio
async def test_expand_node_sets_entries(ws) -> None:
    ws.generator.expand_node = AsyncMock(
        return_value=[WikiEntry("Supplier", "d"), WikiEntry("Supplier", "dup")]
    )
    assert await ws.expand_node() == 1
    assert ws.wiki.parent_of("Supplier") == ROOT


@pytest.mark.asyncio
async def test_populate_node_needs_attachments(ws) -> None:
    ws.generator.populate_node_notes = AsyncMock(return_value="Expert notes")
    assert not await ws.populate_node("Supplier")
    ws.generator.populate_node_notes.assert_not_called()

    ws.wiki.add_attachment("Supplier", ws.files[0])
    assert await ws.populate_node("Supplier")
    assert ws.wiki.get("Supplier").content == "Expert notes"


@pytest.mark.asyncio
async def test_finalize_risks_appends_to_register(ws) -> None:
    manual = ws.risks.add_manual("Fire")
    draft = RiskAnalysisData(
        risks=[RiskItem(id="ai", source="AI Draft", risk_description="Flood")], gap_analysis=["Cyber"]
    )
    ws.generator.finalize_risk_matrix = AsyncMock(return_value=draft)

    await ws.finalize_risks("- Flood")

    assert [r.id for r in ws.risks.risks] == [manual.id, "ai"]
    assert ws.risks.data.gap_analysis == ["Cyber"]


# ------------------------------------------------------------------
# Persistence
# ------------------------------------------------------------------


def test_save_and_load_round_trip(ws, tmp_path: Path) -> None:
    ws.wiki.add_manual_entry("Supplier", "Acme")
    ws.risks.add_manual("Fire", probability=4)
    path = tmp_path / ".kms" / "workspace.json"

    ws.save(path)
    loaded = Workspace.load(path)

    assert [f.name for f in loaded.files] == ["contract.txt", "minutes.txt"]
    assert loaded.files[0].processed_data == ws.files[0].processed_data
    assert loaded.wiki.parent_of("Supplier") == ROOT
    assert loaded.risks.risks[0].probability == 4


def test_load_missing_path_gives_empty_workspace(tmp_path: Path) -> None:
    ws = Workspace.load(tmp_path / "nope.json")
    assert ws.files == []
    assert ws.wiki.node_names() == [ROOT]


def test_apply_snapshot_is_all_or_nothing(ws) -> None:
    ws.wiki.add_manual_entry("Supplier", "Acme")
    bad = {"files": [], "wiki": {"A": "broken"}}

    with pytest.raises(SnapshotError):
        ws.apply_snapshot(bad)

    assert len(ws.files) == 2
    assert ws.wiki.parent_of("Supplier") == ROOT


def test_apply_snapshot_resets_chat_session(ws) -> None:
    ws.sessions.session_for(ws.files)
    ws.apply_snapshot(json.loads(json.dumps(ws.to_snapshot())))
    assert ws.sessions.session is None
