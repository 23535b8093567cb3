"""LiteLLM transport: structured calls, streaming chat, API key validation.

Every model call in ingestion, chat, wiki and the generators routes through
this module. LiteLLM's built-in retry is used (``num_retries``, exponential
backoff). API key presence is validated at startup before any call is made.
"""

from __future__ import annotations

import os
from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Any

import litellm

# Disable LiteLLM verbose logging unless explicitly enabled
litellm.suppress_debug_info = True
litellm.set_verbose = False  # type: ignore[assignment]
# Providers that do not understand safety_settings drop them instead of failing.
litellm.drop_params = True


# ------------------------------------------------------------------
# Provider → env var mapping for API key validation
# ------------------------------------------------------------------

_PROVIDER_ENV: dict[str, str | None] = {
    "gemini": "GEMINI_API_KEY",
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "azure": "AZURE_API_KEY",
    "mistral": "MISTRAL_API_KEY",
    "groq": "GROQ_API_KEY",
    "ollama": None,  # Local, no key required
    "ollama_chat": None,
}

# Domain content includes sensitive-sounding but legitimate risk language.
PERMISSIVE_SAFETY: list[dict[str, str]] = [
    {"category": "HARM_CATEGORY_HATE_SPEECH", "threshold": "BLOCK_NONE"},
    {"category": "HARM_CATEGORY_SEXUALLY_EXPLICIT", "threshold": "BLOCK_NONE"},
    {"category": "HARM_CATEGORY_DANGEROUS_CONTENT", "threshold": "BLOCK_NONE"},
    {"category": "HARM_CATEGORY_HARASSMENT", "threshold": "BLOCK_NONE"},
]

FINISH_SAFETY = frozenset(["content_filter", "safety", "SAFETY"])
FINISH_LENGTH = frozenset(["length", "max_tokens", "MAX_TOKENS"])


def provider_of(model: str) -> str:
    return model.split("/")[0].lower() if "/" in model else "openai"


def validate_api_key(model: str) -> None:
    """Check that the required API key env var is set for *model*.

    Args:
        model: LiteLLM model string in 'provider/model' format.

    Raises:
        EnvironmentError: If the required key is missing from environment.
    """
    provider = provider_of(model)
    env_var = _PROVIDER_ENV.get(provider, f"{provider.upper()}_API_KEY")

    if env_var is None:
        return

    if not os.getenv(env_var):
        raise EnvironmentError(
            f"API key not found for provider '{provider}'. "
            f"Set the {env_var} environment variable."
        )


# ------------------------------------------------------------------
# Content parts
# ------------------------------------------------------------------


@dataclass
class TextPart:
    text: str


@dataclass
class BinaryPart:
    """Inline binary payload, already base64-encoded."""

    mime_type: str
    data: str


Part = TextPart | BinaryPart


def build_content(parts: list[Part]) -> list[dict[str, Any]]:
    """Convert parts into an OpenAI-style multi-part message content list."""
    content: list[dict[str, Any]] = []
    for part in parts:
        if isinstance(part, BinaryPart):
            content.append(
                {
                    "type": "file",
                    "file": {"file_data": f"data:{part.mime_type};base64,{part.data}"},
                }
            )
        else:
            content.append({"type": "text", "text": part.text})
    return content


# ------------------------------------------------------------------
# Calls
# ------------------------------------------------------------------


@dataclass
class Generation:
    """Result of one non-streaming call. ``text`` is None when the model returned nothing."""

    text: str | None
    finish_reason: str | None = None


async def generate(
    parts: list[Part],
    *,
    model: str,
    response_format: dict[str, Any] | None = None,
    temperature: float = 0.2,
    max_output_tokens: int = 8_192,
    safety_settings: list[dict[str, str]] | None = None,
    num_retries: int = 3,
) -> Generation:
    """Call litellm.acompletion() with retry/backoff.

    Raises:
        litellm.exceptions.APIError: On persistent API failure after retries.
    """
    kwargs: dict[str, Any] = {
        "model": model,
        "messages": [{"role": "user", "content": build_content(parts)}],
        "temperature": temperature,
        "max_tokens": max_output_tokens,
        "safety_settings": safety_settings if safety_settings is not None else PERMISSIVE_SAFETY,
        "num_retries": num_retries,
    }
    if response_format is not None:
        kwargs["response_format"] = response_format

    response = await litellm.acompletion(**kwargs)
    choice = response.choices[0]
    text = choice.message.content or None
    return Generation(text=text, finish_reason=getattr(choice, "finish_reason", None))


async def generate_stream(
    messages: list[dict[str, Any]],
    *,
    model: str,
    temperature: float = 0.5,
) -> AsyncIterator[str]:
    """Stream text deltas for a multi-turn conversation.

    Terminates on natural completion; transport errors propagate to the caller.
    """
    response = await litellm.acompletion(
        model=model,
        messages=messages,
        temperature=temperature,
        safety_settings=PERMISSIVE_SAFETY,
        stream=True,
    )
    async for chunk in response:
        if not chunk.choices:
            continue
        delta = chunk.choices[0].delta.content
        if delta:
            yield delta


def describe_finish_reason(finish_reason: str | None) -> str:
    """Human-readable explanation for an empty response, by stop cause."""
    if finish_reason in FINISH_SAFETY:
        return "The model blocked the response due to safety settings."
    if finish_reason in FINISH_LENGTH:
        return "The model ran out of tokens. The response was too long."
    if finish_reason:
        return f"Model stopped generating. Reason: {finish_reason}"
    return "No data returned from model."
