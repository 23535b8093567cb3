"""Per-chunk structured extraction via LiteLLM.

Fail-soft contract: ``extract()`` never raises. An empty reply, a transport
error or malformed JSON all degrade to ``empty_processed_data()`` so one bad
chunk does not abort a multi-chunk ingestion.
"""

from __future__ import annotations

import logging

from sdm_kms.config import DEFAULT_MODEL, ExtractionCfg
from sdm_kms.llm import client
from sdm_kms.llm.client import Part, TextPart
from sdm_kms.llm.schemas import IngestionPayload, Malformed, decode, response_format
from sdm_kms.models import ProcessedData, empty_processed_data

logger = logging.getLogger(__name__)

_INTRO = "Analyze this document segment from ({file_name}). Extract key intelligence.\n"

_TASK = """\n\nTASK:
1. Write a concise summary of this section.
2. List key topics/concepts.
3. List explicit or implied risks and CATEGORIZE them using PESTLE \
(Political, Economic, Social, Technological, Legal, Environmental) or Operational.
4. Extract key data points.
5. List key entities.

Output strictly valid JSON."""


class ExtractionClient:
    """Issue one schema-constrained extraction call per content segment.

    Args:
        model:  LiteLLM model string.
        config: Temperature / output budget / retry settings.
    """

    def __init__(self, model: str = DEFAULT_MODEL, config: ExtractionCfg | None = None) -> None:
        self._model = model
        self._config = config or ExtractionCfg()

    @property
    def model(self) -> str:
        return self._model

    async def extract(self, parts: list[Part], file_name: str = "") -> ProcessedData:
        """Extract a ProcessedData record from *parts* (text and/or inline binary)."""
        prompt = [TextPart(_INTRO.format(file_name=file_name)), *parts, TextPart(_TASK)]
        try:
            result = await client.generate(
                prompt,
                model=self._model,
                response_format=response_format(IngestionPayload),
                temperature=self._config.temperature,
                max_output_tokens=self._config.max_output_tokens,
                num_retries=self._config.num_retries,
            )
        except Exception as exc:
            logger.error("Extraction call failed for %s: %s", file_name or "<segment>", exc)
            return empty_processed_data()

        if not result.text:
            logger.warning(
                "Extraction returned no text for %s (finish reason: %s)",
                file_name or "<segment>",
                result.finish_reason,
            )
            return empty_processed_data()

        decoded = decode(result.text, IngestionPayload)
        if isinstance(decoded, Malformed):
            logger.error(
                "Extraction returned malformed JSON for %s: %s",
                file_name or "<segment>",
                decoded.reason,
            )
            return empty_processed_data()
        return decoded.data.to_domain()
