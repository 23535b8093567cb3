"""Ingestion pipeline — loaders, chunker, extraction client, aggregator."""

from sdm_kms.ingest.aggregator import DocumentIngestor, merge_results
from sdm_kms.ingest.chunker import chunk_text
from sdm_kms.ingest.extractor import ExtractionClient
from sdm_kms.ingest.loaders import SUPPORTED_EXTENSIONS, LoadResult, load_paths

__all__ = [
    "DocumentIngestor",
    "ExtractionClient",
    "LoadResult",
    "SUPPORTED_EXTENSIONS",
    "chunk_text",
    "load_paths",
    "merge_results",
]
