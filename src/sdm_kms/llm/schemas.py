"""Model-output contracts and the strict decode step.

Each payload class is both the JSON schema sent with the request and the
validator applied to the reply. ``decode()`` never raises: it returns
``Ok(data)`` or ``Malformed(raw_text, reason)``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from sdm_kms.models import (
    EmailDraft,
    ProcessedData,
    ReportData,
    ReportSection,
    RiskAnalysisData,
    RiskItem,
    RiskMention,
    WikiEntry,
    new_id,
)

RISK_CATEGORIES = (
    "Political",
    "Economic",
    "Social",
    "Technological",
    "Legal",
    "Environmental",
    "Operational",
)


class _Payload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


# ------------------------------------------------------------------
# Ingestion
# ------------------------------------------------------------------


class RiskMentionPayload(_Payload):
    risk: str = ""
    category: str = Field(
        default="",
        description="One of: " + ", ".join(RISK_CATEGORIES),
    )


class IngestionPayload(_Payload):
    summary: str = ""
    topics: list[str] = Field(default_factory=list)
    risks: list[RiskMentionPayload] = Field(default_factory=list)
    key_points: list[str] = Field(default_factory=list, alias="keyPoints")
    entities: list[str] = Field(default_factory=list)

    def to_domain(self) -> ProcessedData:
        return ProcessedData(
            summary=self.summary,
            topics=list(self.topics),
            risks=[RiskMention(risk=r.risk, category=r.category) for r in self.risks],
            key_points=list(self.key_points),
            entities=list(self.entities),
        )


# ------------------------------------------------------------------
# Wiki
# ------------------------------------------------------------------


class ParentSuggestionPayload(_Payload):
    suggested_parent: str = Field(default="", alias="suggestedParent")
    reasoning: str = ""


class WikiEntryPayload(_Payload):
    term: str
    definition: str = ""
    related_context: str = Field(default="", alias="relatedContext")


class WikiEntriesPayload(_Payload):
    entries: list[WikiEntryPayload] = Field(default_factory=list)

    def to_domain(self) -> list[WikiEntry]:
        return [
            WikiEntry(term=e.term, definition=e.definition, related_context=e.related_context)
            for e in self.entries
            if e.term.strip()
        ]


# ------------------------------------------------------------------
# Generators
# ------------------------------------------------------------------


class ReportSectionPayload(_Payload):
    heading: str = ""
    content: str = ""


class ReportPayload(_Payload):
    title: str = ""
    executive_summary: str = Field(default="", alias="executiveSummary")
    key_findings: list[str] = Field(default_factory=list, alias="keyFindings")
    sections: list[ReportSectionPayload] = Field(default_factory=list)
    conclusion: str = ""

    def to_domain(self) -> ReportData:
        return ReportData(
            title=self.title,
            executive_summary=self.executive_summary,
            key_findings=list(self.key_findings),
            sections=[ReportSection(heading=s.heading, content=s.content) for s in self.sections],
            conclusion=self.conclusion,
        )


class EmailPayload(_Payload):
    subject: str = ""
    body: str = ""
    tone_analysis: str = Field(default="", alias="toneAnalysis")

    def to_domain(self) -> EmailDraft:
        return EmailDraft(subject=self.subject, body=self.body, tone_analysis=self.tone_analysis)


class RiskItemPayload(_Payload):
    risk_description: str = Field(default="", alias="riskDescription")
    category: str = "General"
    probability: int = 3
    impact: int = 3
    mitigation_strategy: str = Field(default="", alias="mitigationStrategy")


class RiskMatrixPayload(_Payload):
    risks: list[RiskItemPayload] = Field(default_factory=list)
    gap_analysis: list[str] = Field(default_factory=list, alias="gapAnalysis")

    def to_domain(self, source: str = "AI Draft") -> RiskAnalysisData:
        return RiskAnalysisData(
            risks=[
                RiskItem(
                    id=new_id(),
                    source=source,
                    risk_description=r.risk_description,
                    category=r.category or "General",
                    probability=r.probability,
                    impact=r.impact,
                    mitigation_strategy=r.mitigation_strategy,
                )
                for r in self.risks
            ],
            gap_analysis=list(self.gap_analysis),
        )


# ------------------------------------------------------------------
# Decode
# ------------------------------------------------------------------

P = TypeVar("P", bound=BaseModel)


@dataclass
class Ok(Generic[P]):
    data: P


@dataclass
class Malformed:
    raw_text: str
    reason: str


def response_format(payload_cls: type[BaseModel]) -> dict[str, Any]:
    """LiteLLM ``response_format`` requesting JSON that matches *payload_cls*."""
    return {
        "type": "json_schema",
        "json_schema": {
            "name": payload_cls.__name__,
            "schema": payload_cls.model_json_schema(by_alias=True),
        },
    }


def decode(text: str, payload_cls: type[P]) -> Ok[P] | Malformed:
    """Strictly decode model output *text* into *payload_cls*."""
    try:
        return Ok(payload_cls.model_validate_json(_strip_fences(text)))
    except ValidationError as exc:
        return Malformed(raw_text=text, reason=str(exc).splitlines()[0])


def _strip_fences(text: str) -> str:
    """Remove a surrounding ```json fence some providers add despite JSON mode."""
    stripped = text.strip()
    if stripped.startswith("```") and stripped.endswith("```"):
        body = stripped[3:-3]
        if body.startswith("json"):
            body = body[4:]
        return body.strip()
    return stripped
