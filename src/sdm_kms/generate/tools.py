"""One-shot generators: report, email, risk draft / matrix, wiki expansion.

Unlike per-chunk ingestion these raise on failure. ``StructuredGenerationError``
carries a message that tells the user which corrective action fits: shorten
the request (token limit), relax safety, or simply retry.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TypeVar

from pydantic import BaseModel

from sdm_kms.chat.session import file_parts
from sdm_kms.config import DEFAULT_MODEL, GenerationCfg
from sdm_kms.llm import client
from sdm_kms.llm.client import TextPart, describe_finish_reason
from sdm_kms.llm.schemas import (
    EmailPayload,
    Malformed,
    ReportPayload,
    RiskMatrixPayload,
    WikiEntriesPayload,
    decode,
    response_format,
)
from sdm_kms.models import ROOT, EmailDraft, LocalFile, ReportData, RiskAnalysisData, WikiEntry

logger = logging.getLogger(__name__)

P = TypeVar("P", bound=BaseModel)

_SYSTEM_NOTE = (
    "\n\nSYSTEM_NOTE: You are a data extraction expert. Output strictly valid JSON based on "
    "the schema. \nCRITICAL TOKEN LIMITS: You have a very strict token limit. Keep string "
    "values, summaries, and definitions EXTREMELY CONCISE (under 25 words unless specified). "
    "Do NOT be verbose. Do not add filler text."
)

_MAX_CONTEXT_RISKS = 20


class StructuredGenerationError(RuntimeError):
    """A one-shot generation returned nothing usable."""


@dataclass
class EmailTone:
    """Tone sliders, each 0–100."""

    directness: int = 50  # Low=Deferential, High=Direct
    familiarity: int = 20  # Low=Formal, High=Casual
    audience: int = 50  # Low=Internal, High=External
    power: int = 50  # Low=Ask, High=Tell
    structure: int = 30  # Low=Narrative, High=Bulleted


class Generator:
    """Run structured and free-text generations over a set of files.

    Args:
        model:  LiteLLM model string.
        config: Temperatures and output budgets.
        max_context_chars: Per-file text limit for the attached content.
    """

    def __init__(
        self,
        model: str = DEFAULT_MODEL,
        config: GenerationCfg | None = None,
        max_context_chars: int = 200_000,
    ) -> None:
        self._model = model
        self._config = config or GenerationCfg()
        self._max_context_chars = max_context_chars

    # ------------------------------------------------------------------
    # Primitives
    # ------------------------------------------------------------------

    async def generate_structured(
        self, prompt: str, files: list[LocalFile], payload_cls: type[P]
    ) -> P:
        """Generate JSON matching *payload_cls* from *files* and *prompt*.

        Raises:
            StructuredGenerationError: Empty reply (classified by finish reason),
                malformed JSON, or a transport failure.
        """
        parts = [
            *file_parts(files, self._max_context_chars),
            TextPart(_SYSTEM_NOTE),
            TextPart(f"\n\nTASK:\n{prompt}"),
        ]
        try:
            result = await client.generate(
                parts,
                model=self._model,
                response_format=response_format(payload_cls),
                temperature=self._config.structured_temperature,
                max_output_tokens=self._config.structured_max_output_tokens,
            )
        except Exception as exc:
            logger.error("Structured generation failed: %s", exc)
            raise StructuredGenerationError(str(exc) or "Failed to generate structured data.") from exc

        if not result.text:
            raise StructuredGenerationError(describe_finish_reason(result.finish_reason))

        decoded = decode(result.text, payload_cls)
        if isinstance(decoded, Malformed):
            logger.error("Structured generation returned malformed JSON: %s", decoded.reason)
            raise StructuredGenerationError(f"Model returned malformed JSON: {decoded.reason}")
        return decoded.data

    async def generate_text(self, prompt: str, files: list[LocalFile]) -> str:
        """Free-text generation over *files*.

        Raises:
            StructuredGenerationError: Empty reply or transport failure.
        """
        parts = [*file_parts(files, self._max_context_chars), TextPart(prompt)]
        try:
            result = await client.generate(
                parts,
                model=self._model,
                temperature=self._config.text_temperature,
                max_output_tokens=self._config.text_max_output_tokens,
            )
        except Exception as exc:
            logger.error("Text generation failed: %s", exc)
            raise StructuredGenerationError(str(exc) or "Failed to generate text.") from exc
        if not result.text:
            raise StructuredGenerationError("No text returned from model.")
        return result.text

    # ------------------------------------------------------------------
    # Reports and email
    # ------------------------------------------------------------------

    async def generate_report(
        self, topic: str, files: list[LocalFile], audience: str = "", depth: str = "Standard"
    ) -> ReportData:
        prompt = (
            "Generate a structured report.\n"
            f"Topic: {topic}\n"
            f"Audience: {audience}\n"
            f"Detail Level: {depth}\n\n"
            "Requirements:\n"
            "- Concise Title.\n"
            "- Summarized Executive Summary (Strictly max 30 words).\n"
            "- Top 3 Key Findings (1 short sentence each).\n"
            "- 2 Main Sections only (Strictly max 80 words per section).\n"
            "- Brief Conclusion (max 20 words).\n\n"
            "CRITICAL: Keep it extremely concise to avoid cutting off."
        )
        payload = await self.generate_structured(prompt, files, ReportPayload)
        return payload.to_domain()

    async def draft_email(
        self,
        subject: str,
        key_points: str,
        files: list[LocalFile],
        tone: EmailTone | None = None,
        culture: str = "US/General",
    ) -> EmailDraft:
        tone = tone or EmailTone()
        prompt = (
            "Draft an email.\n"
            f"Subject: {subject}\n"
            f"Points: {key_points}\n\n"
            "Configuration (0-100):\n"
            f"Directness: {tone.directness} (Low=Deferential, High=Direct)\n"
            f"Familiarity: {tone.familiarity} (Low=Formal, High=Casual)\n"
            f"Audience: {tone.audience} (Low=Internal, High=External)\n"
            f"Power: {tone.power} (Low=Ask, High=Tell)\n"
            f"Structure: {tone.structure} (Low=Narrative, High=Bulleted)\n"
            f"Cultural Context: {culture}\n\n"
            "Return the subject, body, and a brief toneAnalysis explaining your choices."
        )
        payload = await self.generate_structured(prompt, files, EmailPayload)
        return payload.to_domain()

    # ------------------------------------------------------------------
    # Risk workflow
    # ------------------------------------------------------------------

    async def draft_risks(self, files: list[LocalFile]) -> str:
        """Bulleted top-10 risk list, seeded with risks found during ingestion."""
        prompt = (
            "Analyze the attached content. List the top 10 potential risks found or inferred. \n"
            "Format strictly as a bulleted list:\n- [Risk Description]\n- [Risk Description]\n..."
        )
        known = [r.risk for f in files if f.processed_data for r in f.processed_data.risks]
        if known:
            prompt += (
                "\n\n[KNOWLEDGE BASE CONTEXT - EXTRACTED RISKS]:\n"
                "The following risks were already identified during document ingestion. "
                "Consider these as a starting point:\n- "
                + "\n- ".join(known[:_MAX_CONTEXT_RISKS])
            )
        return await self.generate_text(prompt, files)

    async def finalize_risk_matrix(self, draft: str, files: list[LocalFile]) -> RiskAnalysisData:
        """Score a confirmed risk list 1–5 × 1–5 and add a gap analysis."""
        prompt = (
            f"Input Context (CONFIRMED RISKS):\n{draft}\n\n"
            "TASK:\n1. Convert the 'Input Context' list above into a structured 5x5 Risk Register "
            "(score probability/impact 1-5) in the 'risks' array.\n2. Review the ORIGINAL files "
            "again and populate 'gapAnalysis' with 5-8 blind spots or categories that are NOT in "
            "the confirmed list but should be considered.\n\nCRITICAL: Keep risk descriptions and "
            "mitigation strategies EXTREMELY SHORT (max 10 words each) to prevent token overflow."
        )
        payload = await self.generate_structured(prompt, files, RiskMatrixPayload)
        return payload.to_domain()

    # ------------------------------------------------------------------
    # Wiki
    # ------------------------------------------------------------------

    async def expand_node(self, term: str, files: list[LocalFile]) -> list[WikiEntry]:
        """Four child concepts for *term* (top-level concepts for ROOT)."""
        if term == ROOT:
            prompt = (
                "Extract the Top 4 most important key entities or concepts. "
                "Keep definitions strict max 15 words."
            )
        else:
            prompt = (
                f"Deep dive into '{term}'. Extract 4 sub-concepts, types, or related entities "
                f"strictly related to {term}. Keep definitions strict max 15 words."
            )
        payload = await self.generate_structured(prompt, files, WikiEntriesPayload)
        return payload.to_domain()

    async def populate_node_notes(self, term: str, node_files: list[LocalFile]) -> str:
        prompt = (
            f'Analyze the attached documents. Write a comprehensive expert summary for the '
            f'concept: "{term}". Include key definitions and context.'
        )
        return await self.generate_text(prompt, node_files)
