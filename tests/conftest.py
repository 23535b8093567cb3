"""Shared pytest fixtures."""

from __future__ import annotations

from pathlib import Path

import pytest

from sdm_kms.models import LocalFile, ProcessedData, RiskMention


@pytest.fixture(autouse=True)
def _isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Never read the developer's ~/.sdm_kms/config.yaml or KMS_* env vars."""
    monkeypatch.setattr("sdm_kms.config._GLOBAL_CONFIG_PATH", tmp_path / "no-global" / "config.yaml")
    monkeypatch.delenv("KMS_MODEL", raising=False)
    monkeypatch.delenv("KMS_WORKSPACE", raising=False)


@pytest.fixture
def make_file():
    """Factory for LocalFile records with sensible defaults."""

    def _make(
        name: str = "notes.txt",
        content: str = "Plain text body.",
        *,
        type: str = "text/plain",
        size: int | None = None,
        processed: ProcessedData | None = None,
        file_id: str | None = None,
    ) -> LocalFile:
        return LocalFile(
            id=file_id or f"id-{name}",
            name=name,
            type=type,
            content=content,
            size=len(content) if size is None else size,
            timestamp=1_700_000_000_000,
            summary=processed.summary if processed else None,
            processed_data=processed,
        )

    return _make


@pytest.fixture
def processed() -> ProcessedData:
    return ProcessedData(
        summary="Supplier contract for line 2.",
        topics=["Supplier", "Penalties"],
        risks=[RiskMention(risk="Late delivery", category="Operational")],
        key_points=["Penalty 2% per week"],
        entities=["Acme Corp"],
    )
