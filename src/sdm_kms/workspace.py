"""Workspace — the orchestrating layer that owns all mutable state.

Holds the document library, the wiki, the risk register and the chat session
manager, and wires them to the ingestion pipeline and generators. State is
persisted only as a snapshot file (see ``sdm_kms.snapshot``).
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path

from sdm_kms.chat.session import SessionManager
from sdm_kms.config import KmsConfig
from sdm_kms.generate.tools import Generator
from sdm_kms.ingest.aggregator import DocumentIngestor
from sdm_kms.ingest.extractor import ExtractionClient
from sdm_kms.models import ROOT, LocalFile, ProcessedData, RiskAnalysisData
from sdm_kms.risk.register import RiskRegister, SourcedRisk
from sdm_kms.snapshot import export_snapshot, import_snapshot, load_json, save_json
from sdm_kms.wiki.store import WikiStore
from sdm_kms.wiki.suggest import ParentSuggestion, suggest_parent

logger = logging.getLogger(__name__)


class Workspace:
    def __init__(self, config: KmsConfig | None = None) -> None:
        self.config = config or KmsConfig()
        self.files: list[LocalFile] = []
        self.wiki = WikiStore()
        self.risks = RiskRegister()
        self.sessions = SessionManager(self.config.model, self.config.chat)
        self.ingestor = DocumentIngestor(
            ExtractionClient(self.config.model, self.config.extraction),
            self.config.ingestion,
        )
        self.generator = Generator(
            self.config.model,
            self.config.generation,
            max_context_chars=self.config.chat.max_context_chars,
        )

    # ------------------------------------------------------------------
    # Document library
    # ------------------------------------------------------------------

    def get_file(self, key: str) -> LocalFile | None:
        """Find a file by id, or by name when no id matches."""
        for f in self.files:
            if f.id == key:
                return f
        return next((f for f in self.files if f.name == key), None)

    def add_files(self, files: list[LocalFile]) -> None:
        self.files.extend(files)
        logger.info("Added %d file(s)", len(files))

    def remove_file(self, key: str) -> LocalFile | None:
        file = self.get_file(key)
        if file is not None:
            self.files = [f for f in self.files if f.id != file.id]
            logger.info("Removed file: %s", file.name)
        return file

    def pending_files(self) -> list[LocalFile]:
        return [f for f in self.files if f.processed_data is None]

    async def ingest_file(self, file: LocalFile) -> ProcessedData:
        """Ingest *file* and replace its record wholesale. The file is always kept."""
        file.is_processing = True
        try:
            record = await self.ingestor.ingest(file)
        finally:
            file.is_processing = False
        file.processed_data = record
        file.summary = record.summary
        logger.info(
            "Ingested %s (topics: %d, risks: %d)", file.name, len(record.topics), len(record.risks)
        )
        return record

    async def ingest_pending(
        self,
        files: list[LocalFile] | None = None,
        on_progress: Callable[[LocalFile, ProcessedData], None] | None = None,
    ) -> None:
        """Ingest queued files one at a time, in submission order."""
        for file in list(files if files is not None else self.pending_files()):
            record = await self.ingest_file(file)
            if on_progress is not None:
                on_progress(file, record)

    # ------------------------------------------------------------------
    # Library → tools
    # ------------------------------------------------------------------

    def extracted_risks(self, files: list[LocalFile] | None = None) -> list[SourcedRisk]:
        return [
            SourcedRisk(risk=r.risk, category=r.category, source=f.name)
            for f in (files if files is not None else self.files)
            if f.processed_data
            for r in f.processed_data.risks
        ]

    def add_topic_to_wiki(self, term: str, source_file: str) -> bool:
        return self.wiki.add_manual_entry(term, f"Imported from {source_file}")

    async def suggest_parent(self, term: str, definition: str) -> ParentSuggestion:
        return await suggest_parent(
            term, definition, self.wiki.node_names(), model=self.config.model
        )

    async def expand_node(self, term: str = ROOT) -> int:
        """Generate child entries for *term*; returns how many were kept."""
        entries = await self.generator.expand_node(term, self.files)
        return len(self.wiki.set_entries(term, entries))

    async def populate_node(self, term: str) -> bool:
        """Write expert notes for *term* from its attached files."""
        node = self.wiki.ensure_node(term)
        if not node.files:
            logger.warning("No files attached to '%s' to populate content.", term)
            return False
        self.wiki.update_notes(term, await self.generator.populate_node_notes(term, node.files))
        return True

    async def finalize_risks(self, draft: str, files: list[LocalFile] | None = None) -> RiskAnalysisData:
        analysis = await self.generator.finalize_risk_matrix(
            draft, files if files is not None else self.files
        )
        self.risks.merge_generated(analysis)
        return analysis

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def to_snapshot(self) -> dict:
        return export_snapshot(self.files, self.wiki.to_map(), self.risks.data)

    def apply_snapshot(self, doc: object) -> None:
        """Replace files, wiki and risk register from *doc*; all or nothing.

        Raises:
            SnapshotError: *doc* fails validation; current state is untouched.
        """
        files, wiki, risk_data = import_snapshot(doc)
        self.files = files
        self.wiki.load(wiki)
        self.risks = RiskRegister(risk_data)
        self.sessions.reset()

    @classmethod
    def load(cls, path: Path, config: KmsConfig | None = None) -> Workspace:
        """Open the workspace at *path*; a missing file gives an empty workspace."""
        workspace = cls(config)
        if path.exists():
            workspace.apply_snapshot(load_json(path))
        return workspace

    def save(self, path: Path) -> None:
        save_json(path, self.to_snapshot())
