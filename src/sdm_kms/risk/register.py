"""Risk register: scored risk items from ingestion, manual entry, or AI drafts.

Items are created and edited here but never removed automatically; an AI
generated matrix is appended, not substituted.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sdm_kms.models import RiskAnalysisData, RiskItem, clamp_score, new_id

logger = logging.getLogger(__name__)

DEFAULT_MITIGATION = "To be determined"
DEFAULT_CATEGORY = "General"


@dataclass
class SourcedRisk:
    """A risk mention tagged with the document it came from."""

    risk: str
    category: str
    source: str


class RiskRegister:
    def __init__(self, data: RiskAnalysisData | None = None) -> None:
        self.data = data or RiskAnalysisData()

    @property
    def risks(self) -> list[RiskItem]:
        return self.data.risks

    def get(self, risk_id: str) -> RiskItem | None:
        return next((r for r in self.data.risks if r.id == risk_id), None)

    def add_from_library(self, risk: str, category: str, source: str) -> RiskItem:
        """Add an extracted risk with medium (3 × 3) default scoring."""
        item = RiskItem(
            id=new_id(),
            source=source,
            risk_description=risk,
            category=category or DEFAULT_CATEGORY,
            probability=3,
            impact=3,
            mitigation_strategy=DEFAULT_MITIGATION,
        )
        self.data.risks.append(item)
        return item

    def add_bulk(self, mentions: list[SourcedRisk]) -> list[RiskItem]:
        added = [self.add_from_library(m.risk, m.category, m.source) for m in mentions]
        logger.info("Added %d risks to register", len(added))
        return added

    def add_manual(
        self,
        description: str,
        category: str = DEFAULT_CATEGORY,
        probability: int = 3,
        impact: int = 3,
        mitigation: str = DEFAULT_MITIGATION,
    ) -> RiskItem:
        item = RiskItem(
            id=new_id(),
            source="Manual",
            risk_description=description,
            category=category or DEFAULT_CATEGORY,
            probability=probability,
            impact=impact,
            mitigation_strategy=mitigation,
        )
        self.data.risks.append(item)
        return item

    def update(self, item: RiskItem) -> bool:
        """Replace the item with the same id in place. False if unknown."""
        for index, existing in enumerate(self.data.risks):
            if existing.id == item.id:
                item.probability = clamp_score(item.probability)
                item.impact = clamp_score(item.impact)
                self.data.risks[index] = item
                return True
        return False

    def merge_generated(self, analysis: RiskAnalysisData) -> None:
        """Append AI-drafted items and take over the new gap analysis."""
        self.data.risks.extend(analysis.risks)
        self.data.gap_analysis = list(analysis.gap_analysis)

    def sorted_by_score(self) -> list[RiskItem]:
        return sorted(self.data.risks, key=lambda r: r.score, reverse=True)
