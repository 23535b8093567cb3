"""Model transport and output contracts."""

from sdm_kms.llm.client import (
    BinaryPart,
    Generation,
    TextPart,
    generate,
    generate_stream,
    validate_api_key,
)
from sdm_kms.llm.schemas import Malformed, Ok, decode, response_format

__all__ = [
    "BinaryPart",
    "Generation",
    "Malformed",
    "Ok",
    "TextPart",
    "decode",
    "generate",
    "generate_stream",
    "response_format",
    "validate_api_key",
]
