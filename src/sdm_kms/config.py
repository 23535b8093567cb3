"""sdm-kms configuration loader.

Priority (high → low):
  1. CLI flags              (handled at call site, not in this module)
  2. Environment variables  (KMS_MODEL, KMS_WORKSPACE)
  3. Per-project kms.yaml   (current working directory)
  4. Global ~/.sdm_kms/config.yaml
  5. Hardcoded defaults

Neither YAML layer may hold API keys; the model key is read from the process
environment only. All YAML reads use yaml.safe_load().
"""

from __future__ import annotations

import os
import re
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_GLOBAL_CONFIG_DIR: Path = Path.home() / ".sdm_kms"
_GLOBAL_CONFIG_PATH: Path = _GLOBAL_CONFIG_DIR / "config.yaml"
_PROJECT_CONFIG_NAME: str = "kms.yaml"

DEFAULT_MODEL = "gemini/gemini-2.5-flash"

# Matches api_key, api-key, api_secret, *_token, token, *_secret, secret,
# password, passwd, credential(s). Does not match max_output_tokens.
_API_KEY_RE: re.Pattern[str] = re.compile(
    r"api[_\-]?(?:key|secret)"
    r"|_token$"
    r"|^token$"
    r"|_secret$"
    r"|^secret$"
    r"|passw(?:ord|d)"
    r"|credential",
    re.IGNORECASE,
)

_KNOWN_SECTIONS: frozenset[str] = frozenset(
    ["model", "ingestion", "extraction", "chat", "generation", "workspace"]
)

_PDF_MODES: frozenset[str] = frozenset(["binary", "text"])


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ConfigError(ValueError):
    """Raised when a config file contains an invalid or forbidden value."""


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


@dataclass
class IngestionCfg:
    """Chunking and aggregation thresholds (kms.yaml: ingestion:).

    Attributes:
        chunk_size: Maximum characters per chunk sent to the model.
        small_document_threshold: Texts shorter than this go in one call.
        summary_cap: Merged summaries are truncated to this many characters.
        pdf_mode: 'binary' sends PDFs inline; 'text' extracts page text locally.
    """

    chunk_size: int = 50_000
    small_document_threshold: int = 60_000
    summary_cap: int = 2_000
    pdf_mode: str = "binary"


@dataclass
class ExtractionCfg:
    """Per-chunk structured extraction (kms.yaml: extraction:)."""

    temperature: float = 0.2
    max_output_tokens: int = 8_192
    num_retries: int = 3


@dataclass
class ChatCfg:
    """Chat session settings (kms.yaml: chat:)."""

    temperature: float = 0.5
    max_context_chars: int = 200_000


@dataclass
class GenerationCfg:
    """One-shot report / email / risk generators (kms.yaml: generation:)."""

    structured_temperature: float = 0.3
    structured_max_output_tokens: int = 8_192
    text_temperature: float = 0.4
    text_max_output_tokens: int = 4_096


@dataclass
class WorkspaceCfg:
    """Where the workspace snapshot lives (kms.yaml: workspace:)."""

    path: str = "kms.json"


@dataclass
class KmsConfig:
    """Root configuration object, built by load_config() from merged YAML layers."""

    model: str = DEFAULT_MODEL
    ingestion: IngestionCfg = field(default_factory=IngestionCfg)
    extraction: ExtractionCfg = field(default_factory=ExtractionCfg)
    chat: ChatCfg = field(default_factory=ChatCfg)
    generation: GenerationCfg = field(default_factory=GenerationCfg)
    workspace: WorkspaceCfg = field(default_factory=WorkspaceCfg)


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def _find_secret(obj: Any, path: str = "") -> str | None:
    """Dotted path of the first API-key-like key in *obj*, or None."""
    if not isinstance(obj, dict):
        return None
    for key, value in obj.items():
        dotted = f"{path}.{key}" if path else str(key)
        if _API_KEY_RE.search(str(key)):
            return dotted
        found = _find_secret(value, dotted)
        if found:
            return found
    return None


def _read_layer(path: Path) -> dict[str, Any]:
    """Parse one YAML config layer; a missing file is an empty layer.

    Raises:
        ConfigError: The file is not a YAML mapping, or it holds a secret.
    """
    if not path.exists():
        return {}
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"'{path}' is not valid YAML: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"'{path}' must contain a YAML mapping.")

    secret = _find_secret(data)
    if secret:
        env_name = secret.rsplit(".", 1)[-1].upper().replace("-", "_")
        raise ConfigError(
            f"'{path}' contains a forbidden key '{secret}'.\n"
            "  Model credentials are read from the environment only.\n"
            f"  Remove '{secret}' from {path.name} and use:  export {env_name}=<value>"
        )

    for key in data:
        if key not in _KNOWN_SECTIONS:
            warnings.warn(
                f"Unknown config key '{key}' in '{path}' — ignored.", UserWarning, stacklevel=3
            )
    return data


def _validate(cfg: KmsConfig) -> None:
    ing = cfg.ingestion
    if ing.chunk_size < 1:
        raise ConfigError("ingestion.chunk_size must be >= 1")
    if ing.summary_cap < 1:
        raise ConfigError("ingestion.summary_cap must be >= 1")
    if ing.pdf_mode not in _PDF_MODES:
        raise ConfigError(
            f"ingestion.pdf_mode must be one of {sorted(_PDF_MODES)}, got '{ing.pdf_mode}'"
        )


# ---------------------------------------------------------------------------
# Merge + build
# ---------------------------------------------------------------------------


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Return a new dict that is *base* deep-merged with *override*."""
    result = dict(base)
    for k, v in override.items():
        if k in result and isinstance(result[k], dict) and isinstance(v, dict):
            result[k] = _deep_merge(result[k], v)
        else:
            result[k] = v
    return result


def _cfg_from_dict(data: dict[str, Any]) -> KmsConfig:
    """Build a *KmsConfig* from a merged raw YAML dict."""
    cfg = KmsConfig()

    if "model" in data:
        cfg.model = str(data["model"])

    if "ingestion" in data:
        i = data["ingestion"]
        cfg.ingestion = IngestionCfg(
            chunk_size=int(i.get("chunk_size", cfg.ingestion.chunk_size)),
            small_document_threshold=int(
                i.get("small_document_threshold", cfg.ingestion.small_document_threshold)
            ),
            summary_cap=int(i.get("summary_cap", cfg.ingestion.summary_cap)),
            pdf_mode=str(i.get("pdf_mode", cfg.ingestion.pdf_mode)),
        )

    if "extraction" in data:
        e = data["extraction"]
        cfg.extraction = ExtractionCfg(
            temperature=float(e.get("temperature", cfg.extraction.temperature)),
            max_output_tokens=int(e.get("max_output_tokens", cfg.extraction.max_output_tokens)),
            num_retries=int(e.get("num_retries", cfg.extraction.num_retries)),
        )

    if "chat" in data:
        c = data["chat"]
        cfg.chat = ChatCfg(
            temperature=float(c.get("temperature", cfg.chat.temperature)),
            max_context_chars=int(c.get("max_context_chars", cfg.chat.max_context_chars)),
        )

    if "generation" in data:
        g = data["generation"]
        cfg.generation = GenerationCfg(
            structured_temperature=float(
                g.get("structured_temperature", cfg.generation.structured_temperature)
            ),
            structured_max_output_tokens=int(
                g.get("structured_max_output_tokens", cfg.generation.structured_max_output_tokens)
            ),
            text_temperature=float(g.get("text_temperature", cfg.generation.text_temperature)),
            text_max_output_tokens=int(
                g.get("text_max_output_tokens", cfg.generation.text_max_output_tokens)
            ),
        )

    if "workspace" in data:
        w = data["workspace"]
        cfg.workspace = WorkspaceCfg(path=str(w.get("path", cfg.workspace.path)))

    return cfg


def _apply_env_overrides(cfg: KmsConfig) -> KmsConfig:
    """Apply KMS_* environment variable overrides."""
    if model := os.environ.get("KMS_MODEL"):
        cfg.model = model
    if workspace := os.environ.get("KMS_WORKSPACE"):
        cfg.workspace.path = workspace
    return cfg


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(
    project_dir: Path | None = None,
    *,
    global_config_path: Path | None = None,
) -> KmsConfig:
    """Load and return a merged *KmsConfig*.

    Applies layers in order: global → per-project → env vars.

    Args:
        project_dir: Directory to search for *kms.yaml*. Defaults to CWD.
        global_config_path: Override the global config path (for testing).

    Raises:
        ConfigError: A layer is not a YAML mapping, holds an API-key-like
            field, or a value is out of range.
    """
    global_path = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    project_path = (project_dir if project_dir is not None else Path.cwd()) / _PROJECT_CONFIG_NAME

    merged: dict[str, Any] = {}
    for layer in (global_path, project_path):
        merged = _deep_merge(merged, _read_layer(layer))

    try:
        cfg = _cfg_from_dict(merged)
    except (AttributeError, TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid config value: {exc}") from exc
    cfg = _apply_env_overrides(cfg)
    _validate(cfg)
    return cfg
