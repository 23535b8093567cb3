"""Domain models shared by ingestion, wiki, risk register, chat and snapshots.

``to_dict()`` / ``from_dict()`` use the camelCase keys of the snapshot file
format so an exported workspace stays readable by older tooling.
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from typing import Any

ROOT = "ROOT"

BINARY_MIME_TYPES: frozenset[str] = frozenset(["application/pdf"])


def new_id() -> str:
    return str(uuid.uuid4())


def now_ms() -> int:
    return int(time.time() * 1000)


def clamp_score(value: Any) -> int:
    """Coerce a probability / impact rating into the 1–5 range."""
    try:
        n = int(value)
    except (TypeError, ValueError):
        return 3
    return max(1, min(5, n))


# ---------------------------------------------------------------------------
# Ingestion
# ---------------------------------------------------------------------------


@dataclass
class RiskMention:
    risk: str
    category: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"risk": self.risk, "category": self.category}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RiskMention:
        return cls(risk=str(data.get("risk", "")), category=str(data.get("category", "")))


@dataclass
class ProcessedData:
    """Aggregated extraction record for one document.

    Always structurally complete: every field present, possibly empty.
    """

    summary: str = ""
    topics: list[str] = field(default_factory=list)
    risks: list[RiskMention] = field(default_factory=list)
    key_points: list[str] = field(default_factory=list)
    entities: list[str] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not (self.summary or self.topics or self.risks or self.key_points or self.entities)

    def to_dict(self) -> dict[str, Any]:
        return {
            "summary": self.summary,
            "topics": list(self.topics),
            "risks": [r.to_dict() for r in self.risks],
            "keyPoints": list(self.key_points),
            "entities": list(self.entities),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ProcessedData:
        return cls(
            summary=str(data.get("summary") or ""),
            topics=[str(t) for t in data.get("topics") or []],
            risks=[RiskMention.from_dict(r) for r in data.get("risks") or []],
            key_points=[str(k) for k in data.get("keyPoints") or []],
            entities=[str(e) for e in data.get("entities") or []],
        )


def empty_processed_data() -> ProcessedData:
    """The degraded-success record returned from every caught extraction error."""
    return ProcessedData()


@dataclass
class LocalFile:
    id: str
    name: str
    type: str
    content: str
    size: int
    timestamp: int = field(default_factory=now_ms)
    summary: str | None = None
    processed_data: ProcessedData | None = None
    is_processing: bool = False

    @property
    def is_binary(self) -> bool:
        return self.type in BINARY_MIME_TYPES

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "content": self.content,
            "type": self.type,
            "size": self.size,
            "timestamp": self.timestamp,
        }
        if self.summary is not None:
            data["summary"] = self.summary
        if self.processed_data is not None:
            data["processedData"] = self.processed_data.to_dict()
        if self.is_processing:
            data["isProcessing"] = True
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LocalFile:
        processed = data.get("processedData")
        return cls(
            id=str(data.get("id") or new_id()),
            name=str(data["name"]),
            type=str(data.get("type") or "text/plain"),
            content=str(data.get("content") or ""),
            size=int(data.get("size") or 0),
            timestamp=int(data.get("timestamp") or 0),
            summary=data.get("summary"),
            processed_data=ProcessedData.from_dict(processed) if processed else None,
            is_processing=bool(data.get("isProcessing", False)),
        )


# ---------------------------------------------------------------------------
# Wiki
# ---------------------------------------------------------------------------


@dataclass
class WikiEntry:
    term: str
    definition: str = ""
    related_context: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "term": self.term,
            "definition": self.definition,
            "relatedContext": self.related_context,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> WikiEntry:
        return cls(
            term=str(data["term"]),
            definition=str(data.get("definition") or ""),
            related_context=str(data.get("relatedContext") or ""),
        )


@dataclass
class WikiNodeData:
    entries: list[WikiEntry] = field(default_factory=list)
    content: str = ""
    files: list[LocalFile] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "entries": [e.to_dict() for e in self.entries],
            "content": self.content,
            "files": [f.to_dict() for f in self.files],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> WikiNodeData:
        return cls(
            entries=[WikiEntry.from_dict(e) for e in data.get("entries") or []],
            content=str(data.get("content") or ""),
            files=[LocalFile.from_dict(f) for f in data.get("files") or []],
        )


# ---------------------------------------------------------------------------
# Risk register
# ---------------------------------------------------------------------------


@dataclass
class RiskItem:
    id: str
    source: str
    risk_description: str
    category: str = "General"
    probability: int = 3
    impact: int = 3
    mitigation_strategy: str = "To be determined"

    def __post_init__(self) -> None:
        self.probability = clamp_score(self.probability)
        self.impact = clamp_score(self.impact)

    @property
    def score(self) -> int:
        return self.probability * self.impact

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "source": self.source,
            "riskDescription": self.risk_description,
            "category": self.category,
            "probability": self.probability,
            "impact": self.impact,
            "mitigationStrategy": self.mitigation_strategy,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RiskItem:
        return cls(
            id=str(data.get("id") or new_id()),
            source=str(data.get("source") or ""),
            risk_description=str(data.get("riskDescription") or ""),
            category=str(data.get("category") or "General"),
            probability=data.get("probability", 3),
            impact=data.get("impact", 3),
            mitigation_strategy=str(data.get("mitigationStrategy") or ""),
        )


@dataclass
class RiskAnalysisData:
    risks: list[RiskItem] = field(default_factory=list)
    gap_analysis: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "risks": [r.to_dict() for r in self.risks],
            "gapAnalysis": list(self.gap_analysis),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RiskAnalysisData:
        return cls(
            risks=[RiskItem.from_dict(r) for r in data.get("risks") or []],
            gap_analysis=[str(g) for g in data.get("gapAnalysis") or []],
        )


# ---------------------------------------------------------------------------
# Generated documents + chat
# ---------------------------------------------------------------------------


@dataclass
class ReportSection:
    heading: str
    content: str


@dataclass
class ReportData:
    title: str
    executive_summary: str
    key_findings: list[str] = field(default_factory=list)
    sections: list[ReportSection] = field(default_factory=list)
    conclusion: str = ""


@dataclass
class EmailDraft:
    subject: str
    body: str
    tone_analysis: str = ""


@dataclass
class ChatMessage:
    sender: str  # "user" | "bot"
    text: str
    is_error: bool = False
    id: str = field(default_factory=new_id)
    timestamp: int = field(default_factory=now_ms)
