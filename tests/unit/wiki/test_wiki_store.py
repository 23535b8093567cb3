"""Tests for the in-memory concept wiki."""

from __future__ import annotations

from sdm_kms.models import ROOT, WikiEntry, WikiNodeData
from sdm_kms.wiki.store import MANUAL_CONTEXT, WikiStore


def _entries(*terms: str) -> list[WikiEntry]:
    return [WikiEntry(term=t, definition=f"{t} def") for t in terms]


def _store() -> WikiStore:
    """ROOT → Power → {Battery, Solar}; ROOT → Control."""
    store = WikiStore()
    store.set_entries(ROOT, _entries("Power", "Control"))
    store.set_entries("Power", _entries("Battery", "Solar"))
    return store


# ------------------------------------------------------------------
# Construction
# ------------------------------------------------------------------


def test_new_store_has_root_and_home_path() -> None:
    store = WikiStore()
    assert store.node_names() == [ROOT]
    assert store.path == [ROOT]
    assert store.current == ROOT


def test_load_rebuilds_parent_index() -> None:
    nodes = {
        ROOT: WikiNodeData(entries=_entries("A")),
        "A": WikiNodeData(entries=_entries("B")),
    }
    store = WikiStore.from_map(nodes)
    assert store.parent_of("A") == ROOT
    assert store.parent_of("B") == "A"
    assert store.is_branch("A")
    assert not store.is_branch("B")


def test_load_keeps_first_parent_for_duplicate_listing() -> None:
    nodes = {
        ROOT: WikiNodeData(entries=_entries("A", "X")),
        "A": WikiNodeData(entries=_entries("X")),
    }
    store = WikiStore(nodes)
    assert store.parent_of("X") == ROOT
    listed_under = [
        term for term, node in store.to_map().items() if any(e.term == "X" for e in node.entries)
    ]
    assert listed_under == [ROOT]
    assert not store.is_branch("A")


def test_load_drops_root_and_self_listings() -> None:
    nodes = {
        ROOT: WikiNodeData(entries=_entries("A")),
        "A": WikiNodeData(entries=_entries(ROOT, "A", "B")),
    }
    store = WikiStore(nodes)
    assert [e.term for e in store.get("A").entries] == ["B"]
    assert store.parent_of(ROOT) is None


def test_load_drops_cycle_forming_listing() -> None:
    nodes = {
        "A": WikiNodeData(entries=_entries("B")),
        "B": WikiNodeData(entries=_entries("A")),
    }
    store = WikiStore(nodes)
    assert store.parent_of("B") == "A"
    assert store.parent_of("A") is None
    assert store.get("B").entries == []


def test_load_does_not_mutate_input_map() -> None:
    nodes = {
        ROOT: WikiNodeData(entries=_entries("X")),
        "A": WikiNodeData(entries=_entries("X")),
    }
    WikiStore(nodes)
    assert [e.term for e in nodes["A"].entries] == ["X"]


def test_move_after_deduplicating_load() -> None:
    nodes = {
        ROOT: WikiNodeData(entries=_entries("A", "X")),
        "A": WikiNodeData(entries=_entries("X")),
    }
    store = WikiStore(nodes)
    assert store.move_entry("X", "X def", ROOT, "A")
    assert [e.term for e in store.get("A").entries] == ["X"]
    assert [e.term for e in store.get(ROOT).entries] == ["A"]


def test_load_adds_missing_root() -> None:
    store = WikiStore({"Orphan": WikiNodeData(content="notes")})
    assert ROOT in store.nodes


# ------------------------------------------------------------------
# set_entries
# ------------------------------------------------------------------


def test_set_entries_replaces_children_and_keeps_notes() -> None:
    store = _store()
    store.update_notes("Power", "Energy notes")
    kept = store.set_entries("Power", _entries("Wind"))

    assert [e.term for e in kept] == ["Wind"]
    assert store.get("Power").content == "Energy notes"
    assert store.parent_of("Battery") is None
    assert store.parent_of("Wind") == "Power"


def test_set_entries_drops_terms_listed_elsewhere() -> None:
    store = _store()
    kept = store.set_entries("Control", _entries("Battery", "PLC"))
    assert [e.term for e in kept] == ["PLC"]
    assert store.parent_of("Battery") == "Power"


def test_set_entries_drops_duplicates_and_cycles() -> None:
    store = _store()
    kept = store.set_entries("Battery", _entries("Cell", "Cell", "Power", "Battery"))
    assert [e.term for e in kept] == ["Cell"]


# ------------------------------------------------------------------
# add_manual_entry
# ------------------------------------------------------------------


def test_add_manual_entry_creates_node_with_definition_as_notes() -> None:
    store = _store()
    assert store.add_manual_entry("Inverter", "DC to AC", "Power")

    entry = store.get("Power").entries[-1]
    assert entry.term == "Inverter"
    assert entry.related_context == MANUAL_CONTEXT
    assert store.get("Inverter").content == "DC to AC"
    assert store.parent_of("Inverter") == "Power"


def test_add_manual_entry_unknown_parent_falls_back_to_root() -> None:
    store = _store()
    assert store.add_manual_entry("Safety", "d", "Nope")
    assert store.parent_of("Safety") == ROOT
    assert "Nope" not in store.nodes


def test_add_manual_entry_rejects_duplicate_child() -> None:
    store = _store()
    before = list(store.get("Power").entries)
    assert not store.add_manual_entry("Battery", "again", "Power")
    assert store.get("Power").entries == before


def test_add_manual_entry_rejects_term_under_another_parent() -> None:
    store = _store()
    assert not store.add_manual_entry("Battery", "again", "Control")
    assert store.parent_of("Battery") == "Power"


def test_add_manual_entry_keeps_existing_node_notes() -> None:
    store = WikiStore()
    store.update_notes("Lore", "existing notes")
    assert store.add_manual_entry("Lore", "new def")
    assert store.get("Lore").content == "existing notes"


# ------------------------------------------------------------------
# move_entry
# ------------------------------------------------------------------


def test_move_entry_reparents() -> None:
    store = _store()
    assert store.move_entry("Solar", "Solar def", "Power", "Control")

    assert [e.term for e in store.get("Power").entries] == ["Battery"]
    moved = store.get("Control").entries[-1]
    assert moved.term == "Solar"
    assert moved.related_context == "Moved from Power"
    assert store.parent_of("Solar") == "Control"


def test_move_entry_same_parent_is_noop() -> None:
    store = _store()
    assert not store.move_entry("Solar", "d", "Power", "Power")


def test_move_entry_rejects_target_that_already_lists_term() -> None:
    store = _store()
    store.ensure_node("Control").entries.append(WikiEntry("Solar"))
    assert not store.move_entry("Solar", "d", "Power", "Control")
    assert store.parent_of("Solar") == "Power"


def test_move_entry_rejects_wrong_source_parent() -> None:
    store = _store()
    assert not store.move_entry("Solar", "d", "Control", ROOT)


def test_move_entry_rejects_cycle() -> None:
    store = _store()
    assert not store.move_entry("Power", "d", ROOT, "Battery")
    assert store.parent_of("Power") == ROOT


def test_move_entry_creates_missing_target_node() -> None:
    store = _store()
    assert store.move_entry("Battery", "d", "Power", "Storage")
    assert store.get("Storage").entries[0].term == "Battery"


# ------------------------------------------------------------------
# Attachments + navigation
# ------------------------------------------------------------------


def test_attachments(make_file) -> None:
    store = _store()
    f = make_file("datasheet.txt")
    store.add_attachment("Battery", f)
    assert store.get("Battery").files == [f]
    assert store.remove_attachment("Battery", f.id)
    assert not store.remove_attachment("Battery", f.id)
    assert not store.remove_attachment("Missing", f.id)


def test_navigation() -> None:
    store = _store()
    store.drill_into("Power")
    store.drill_into("Battery")
    assert store.path == [ROOT, "Power", "Battery"]
    assert store.back() == "Power"
    store.back()
    assert store.back() == ROOT
    store.drill_into("Control")
    store.home()
    assert store.path == [ROOT]


def test_to_map_round_trips() -> None:
    store = _store()
    clone = WikiStore.from_map(store.to_map())
    assert clone.node_names() == store.node_names()
    assert clone.parent_of("Solar") == "Power"
