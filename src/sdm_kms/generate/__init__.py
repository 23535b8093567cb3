"""One-shot generators and document rendering."""

from sdm_kms.generate.tools import EmailTone, Generator, StructuredGenerationError

__all__ = ["EmailTone", "Generator", "StructuredGenerationError"]
