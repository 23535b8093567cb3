"""Document ingestion: chunk → extract (sequentially) → merge.

``DocumentIngestor.ingest()`` always returns a structurally complete
ProcessedData. Chunks of one document, and documents of one batch, are
processed strictly one at a time: each model call finishes (successfully or
not) before the next one starts.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from sdm_kms.config import IngestionCfg
from sdm_kms.ingest.chunker import chunk_text
from sdm_kms.ingest.extractor import ExtractionClient
from sdm_kms.llm.client import BinaryPart, Part, TextPart
from sdm_kms.models import LocalFile, ProcessedData

logger = logging.getLogger(__name__)

SYNTHESIS_MARKER = "...(Synthesized from multiple sections)"
FAILURE_SUMMARY = "Analysis failed."


def merge_results(results: list[ProcessedData], summary_cap: int = 2_000) -> ProcessedData:
    """Merge per-chunk records into one.

    - summaries: non-empty ones joined with a blank line, capped at
      *summary_cap* characters plus SYNTHESIS_MARKER;
    - topics, entities: de-duplicated (first-seen order kept);
    - risks, key points: concatenated, duplicates kept.

    A single result is returned as-is.
    """
    if len(results) == 1:
        return results[0]

    summary = "\n\n".join(r.summary for r in results if r.summary)
    if len(summary) > summary_cap:
        summary = summary[:summary_cap] + SYNTHESIS_MARKER

    return ProcessedData(
        summary=summary,
        topics=list(dict.fromkeys(t for r in results for t in r.topics)),
        risks=[risk for r in results for risk in r.risks],
        key_points=[k for r in results for k in r.key_points],
        entities=list(dict.fromkeys(e for r in results for e in r.entities)),
    )


def failure_record() -> ProcessedData:
    return ProcessedData(summary=FAILURE_SUMMARY)


class DocumentIngestor:
    """Drive chunking and extraction across whole documents.

    Args:
        extractor: Per-chunk extraction client.
        config:    Chunk size, small-document threshold and summary cap.
    """

    def __init__(self, extractor: ExtractionClient, config: IngestionCfg | None = None) -> None:
        self._extractor = extractor
        self._config = config or IngestionCfg()

    async def ingest(self, file: LocalFile) -> ProcessedData:
        """Turn *file* into a ProcessedData record. Never raises."""
        try:
            return await self._ingest(file)
        except Exception:
            logger.exception("Ingestion failed for %s", file.name)
            return failure_record()

    async def _ingest(self, file: LocalFile) -> ProcessedData:
        cfg = self._config
        if file.is_binary:
            parts: list[Part] = [BinaryPart(mime_type=file.type, data=file.content)]
            return await self._extractor.extract(parts, file.name)

        if len(file.content) < cfg.small_document_threshold:
            return await self._extractor.extract([TextPart(file.content)], file.name)

        chunks = chunk_text(file.content, cfg.chunk_size)
        logger.info("Ingesting %s in %d chunks", file.name, len(chunks))
        results: list[ProcessedData] = []
        for index, chunk in enumerate(chunks, start=1):
            logger.debug("%s: extracting chunk %d/%d", file.name, index, len(chunks))
            results.append(await self._extractor.extract([TextPart(chunk)], file.name))
        return merge_results(results, cfg.summary_cap)

    async def ingest_all(
        self,
        files: list[LocalFile],
        on_progress: Callable[[LocalFile, ProcessedData], None] | None = None,
    ) -> dict[str, ProcessedData]:
        """Ingest *files* one at a time in submission order; returns id → record."""
        records: dict[str, ProcessedData] = {}
        for file in files:
            record = await self.ingest(file)
            records[file.id] = record
            if on_progress is not None:
                on_progress(file, record)
        return records
