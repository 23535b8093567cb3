"""In-memory concept wiki: a forest of named nodes under ``ROOT``.

A node's children are the entries in its ``entries`` list. Each term is listed
under at most one parent; the store keeps an explicit child → parent map so
duplicate and move checks do not scan every node. Rejected mutations
(duplicate child, same-parent move, cycle) are no-ops that return False.
"""

from __future__ import annotations

import logging
from dataclasses import replace

from sdm_kms.models import ROOT, LocalFile, WikiEntry, WikiNodeData

logger = logging.getLogger(__name__)

MANUAL_CONTEXT = "Manually added by user"


class WikiStore:
    """Node map, parent index and navigation path for the concept wiki."""

    def __init__(self, nodes: dict[str, WikiNodeData] | None = None) -> None:
        self.nodes: dict[str, WikiNodeData] = {}
        self._parents: dict[str, str] = {}
        self.path: list[str] = [ROOT]
        self.load(nodes or {})

    # ------------------------------------------------------------------
    # Loading / export
    # ------------------------------------------------------------------

    def load(self, nodes: dict[str, WikiNodeData]) -> None:
        """Replace the whole map; rebuild the parent index; reset navigation.

        Listings that break the tree shape are dropped from the later node:
        a term already listed elsewhere (the first listing in map order wins),
        ``ROOT`` or the node itself as a child, and entries that close a cycle.
        """
        self.nodes = {term: replace(node, entries=list(node.entries)) for term, node in nodes.items()}
        self.nodes.setdefault(ROOT, WikiNodeData())
        self._parents = {}
        for parent, node in self.nodes.items():
            kept: list[WikiEntry] = []
            for entry in node.entries:
                existing = self._parents.get(entry.term)
                if existing is not None:
                    logger.warning(
                        "'%s' is listed under both '%s' and '%s'; keeping '%s'",
                        entry.term,
                        existing,
                        parent,
                        existing,
                    )
                    continue
                if not self._can_attach(entry.term, parent):
                    logger.warning("Dropped entry '%s' under '%s': not a tree", entry.term, parent)
                    continue
                kept.append(entry)
                self._parents[entry.term] = parent
            node.entries = kept
        self.home()

    @classmethod
    def from_map(cls, data: dict[str, WikiNodeData]) -> WikiStore:
        return cls(data)

    def to_map(self) -> dict[str, WikiNodeData]:
        return dict(self.nodes)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get(self, term: str) -> WikiNodeData | None:
        return self.nodes.get(term)

    def node_names(self) -> list[str]:
        return list(self.nodes)

    def parent_of(self, term: str) -> str | None:
        return self._parents.get(term)

    def is_branch(self, term: str) -> bool:
        node = self.nodes.get(term)
        return bool(node and node.entries)

    def _is_ancestor(self, candidate: str, term: str) -> bool:
        """True if *candidate* is *term* or lies on the parent chain above it."""
        seen: set[str] = set()
        current: str | None = term
        while current is not None and current not in seen:
            if current == candidate:
                return True
            seen.add(current)
            current = self._parents.get(current)
        return False

    def _can_attach(self, term: str, parent: str) -> bool:
        if term == ROOT or term == parent:
            return False
        existing = self._parents.get(term)
        if existing is not None and existing != parent:
            return False
        # parent must not sit below term
        return not self._is_ancestor(term, parent)

    # ------------------------------------------------------------------
    # Node mutation
    # ------------------------------------------------------------------

    def ensure_node(self, term: str) -> WikiNodeData:
        """Return the node for *term*, creating an empty one if absent."""
        node = self.nodes.get(term)
        if node is None:
            node = WikiNodeData()
            self.nodes[term] = node
        return node

    def set_entries(self, term: str, entries: list[WikiEntry]) -> list[WikiEntry]:
        """Replace *term*'s child entries wholesale; notes and files are kept.

        Entries naming a term already listed under another parent, or that
        would create a cycle, are dropped. Returns the entries actually stored.
        """
        node = self.ensure_node(term)
        for old in node.entries:
            if self._parents.get(old.term) == term:
                del self._parents[old.term]

        kept: list[WikiEntry] = []
        for entry in entries:
            if entry.term in self._parents and self._parents[entry.term] == term:
                continue  # duplicate within the new list
            if not self._can_attach(entry.term, term):
                logger.debug("Dropped entry '%s' under '%s'", entry.term, term)
                continue
            kept.append(entry)
            self._parents[entry.term] = term

        node.entries = kept
        return kept

    def update_notes(self, term: str, text: str) -> None:
        self.ensure_node(term).content = text

    def add_attachment(self, term: str, file: LocalFile) -> None:
        self.ensure_node(term).files.append(file)

    def remove_attachment(self, term: str, file_id: str) -> bool:
        node = self.nodes.get(term)
        if node is None:
            return False
        before = len(node.files)
        node.files = [f for f in node.files if f.id != file_id]
        return len(node.files) != before

    def add_manual_entry(self, term: str, definition: str, parent_term: str = ROOT) -> bool:
        """List *term* under *parent_term* (ROOT if unknown) and give it a node.

        A new node starts with *definition* as its notes. Returns False when
        *term* is already listed under a parent.
        """
        parent = parent_term if parent_term in self.nodes else ROOT
        if parent_term not in self.nodes:
            logger.debug("Unknown parent '%s'; using %s", parent_term, ROOT)
        if not self._can_attach(term, parent) or self._parents.get(term) == parent:
            logger.debug("Rejected manual entry '%s' under '%s'", term, parent)
            return False

        self.nodes[parent].entries.append(
            WikiEntry(term=term, definition=definition, related_context=MANUAL_CONTEXT)
        )
        self._parents[term] = parent
        if term not in self.nodes:
            self.nodes[term] = WikiNodeData(content=definition)
        return True

    def move_entry(self, term: str, definition: str, from_parent: str, to_parent: str) -> bool:
        """Move *term*'s entry from *from_parent* to *to_parent* in one step.

        Rejected when the parents are equal, *to_parent* already lists the
        term, the term is listed under a parent other than *from_parent*, or
        the move would make the term its own ancestor.
        """
        if from_parent == to_parent:
            return False
        target = self.nodes.get(to_parent)
        if target is not None and any(e.term == term for e in target.entries):
            return False
        current = self._parents.get(term)
        if current is not None and current != from_parent:
            return False
        if term == ROOT or term == to_parent or self._is_ancestor(term, to_parent):
            return False

        source = self.nodes.get(from_parent)
        if source is not None:
            source.entries = [e for e in source.entries if e.term != term]
        target = self.ensure_node(to_parent)
        target.entries.append(
            WikiEntry(term=term, definition=definition, related_context=f"Moved from {from_parent}")
        )
        self._parents[term] = to_parent
        return True

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    @property
    def current(self) -> str:
        return self.path[-1]

    def drill_into(self, term: str) -> WikiNodeData:
        self.path.append(term)
        return self.ensure_node(term)

    def back(self) -> str:
        if len(self.path) > 1:
            self.path.pop()
        return self.current

    def home(self) -> None:
        self.path = [ROOT]
