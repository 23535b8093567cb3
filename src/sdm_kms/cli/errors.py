"""Rich error messages — actionable feedback.

Every error shown to the user must contain:
  1. What went wrong (clear cause)
  2. The exact action the user should take to fix it

Usage:
    from sdm_kms.cli.errors import err_no_api_key
    console.print(err_no_api_key("gemini"))
    raise typer.Exit(1)
"""

from __future__ import annotations


def err_no_api_key(provider: str) -> str:
    """No API key for *provider*.

    Example:
        No API key for 'gemini'. Set:  export GEMINI_API_KEY=...
    """
    env_map = {
        "gemini": "GEMINI_API_KEY",
        "openai": "OPENAI_API_KEY",
        "anthropic": "ANTHROPIC_API_KEY",
        "azure": "AZURE_API_KEY",
        "mistral": "MISTRAL_API_KEY",
        "groq": "GROQ_API_KEY",
    }
    env_var = env_map.get(provider.lower(), f"{provider.upper()}_API_KEY")
    return (
        f"[red]Error:[/] No API key for '{provider}'.\n"
        f"  Set:  export {env_var}=..."
    )


def err_config(detail: str) -> str:
    return (
        f"[red]Error:[/] Invalid configuration: {detail}\n"
        "  Fix ~/.sdm_kms/config.yaml or kms.yaml and retry."
    )


def err_workspace_unreadable(path: str, detail: str) -> str:
    """Workspace snapshot exists but cannot be loaded."""
    return (
        f"[red]Error:[/] Cannot load workspace '{path}': {detail}\n"
        "  Restore a valid snapshot or point --workspace at another file."
    )


def err_import_failed(path: str, detail: str) -> str:
    """An import file failed validation; nothing was changed."""
    return (
        f"[red]Error:[/] Import failed for '{path}': {detail}\n"
        "  The workspace was left unchanged. Check the file was produced by sdm-kms export."
    )


def err_no_files() -> str:
    return (
        "[red]Error:[/] The workspace has no documents.\n"
        "  Run:  sdm-kms ingest PATH"
    )


def err_file_not_found(key: str) -> str:
    return (
        f"[yellow]File not found:[/] '{key}' is not in the workspace.\n"
        "  Run:  sdm-kms status  to see all documents."
    )


def err_node_not_found(term: str) -> str:
    return (
        f"[red]Error:[/] Wiki node '{term}' does not exist.\n"
        "  Run:  sdm-kms wiki show  to list nodes."
    )


def err_risk_not_found(risk_id: str) -> str:
    return (
        f"[red]Error:[/] No risk with id '{risk_id}'.\n"
        "  Run:  sdm-kms risk list  to see ids."
    )


def err_generation_failed(detail: str) -> str:
    """A one-shot generation returned nothing usable."""
    return (
        f"[red]Error:[/] Generation failed: {detail}\n"
        "  Retry, or narrow the request (fewer documents, shorter topic)."
    )


def err_output_path_unsafe(path: str) -> str:
    """--output path fails security validation."""
    return (
        f"[red]Error:[/] Output path is not allowed: '{path}'\n"
        "  Use a path within the current working directory."
    )


def warn_stale_session() -> str:
    """Shown after the document set changes."""
    return (
        "[yellow]⚠[/] The document set changed.\n"
        "  The next chat message starts a fresh conversation."
    )
