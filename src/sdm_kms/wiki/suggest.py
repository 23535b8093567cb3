"""AI parent suggestion for new wiki nodes.

``suggest_parent()`` never leaves the caller without an answer: too few
candidates, a failed call, malformed output, or a suggestion that is not an
existing node all resolve to ``ROOT``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sdm_kms.config import DEFAULT_MODEL
from sdm_kms.llm import client
from sdm_kms.llm.client import TextPart
from sdm_kms.llm.schemas import Malformed, ParentSuggestionPayload, decode, response_format
from sdm_kms.models import ROOT

logger = logging.getLogger(__name__)

_PROMPT = """We are organizing a knowledge graph.
New Node: "{term}" - {definition}

Existing Nodes:
{nodes}

Task: Select the Best Existing Node to be the PARENT of the New Node.
If no specific node fits well, select 'ROOT'.
Return strictly JSON."""


@dataclass
class ParentSuggestion:
    parent: str
    rationale: str


async def suggest_parent(
    term: str,
    definition: str,
    candidates: list[str],
    *,
    model: str = DEFAULT_MODEL,
) -> ParentSuggestion:
    """Rank *candidates* as parents for *term* and return the best one."""
    if len(candidates) < 2:
        return ParentSuggestion(ROOT, "No other nodes available.")

    prompt = _PROMPT.format(term=term, definition=definition, nodes=", ".join(candidates))
    try:
        result = await client.generate(
            [TextPart(prompt)],
            model=model,
            response_format=response_format(ParentSuggestionPayload),
            temperature=0.1,
            max_output_tokens=1_024,
        )
    except Exception as exc:
        logger.error("Parent suggestion failed: %s", exc)
        return ParentSuggestion(ROOT, "Error during suggestion.")

    if not result.text:
        return ParentSuggestion(ROOT, "Model failed.")

    decoded = decode(result.text, ParentSuggestionPayload)
    if isinstance(decoded, Malformed):
        logger.error("Parent suggestion returned malformed JSON: %s", decoded.reason)
        return ParentSuggestion(ROOT, "Model returned an unreadable suggestion.")

    parent = decoded.data.suggested_parent.strip()
    if parent not in candidates or parent == term:
        logger.info("Suggested parent '%s' is not an existing node; using %s", parent, ROOT)
        return ParentSuggestion(ROOT, decoded.data.reasoning or "No existing node fits.")
    return ParentSuggestion(parent, decoded.data.reasoning)
