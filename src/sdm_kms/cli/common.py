"""Shared CLI plumbing: console, option types, workspace open/save, spinners."""

from __future__ import annotations

import asyncio
from collections.abc import Coroutine, Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Annotated, Any, TypeVar

import typer
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn

from sdm_kms.cli.errors import err_config, err_no_api_key, err_workspace_unreadable
from sdm_kms.config import ConfigError, KmsConfig, load_config
from sdm_kms.llm.client import provider_of, validate_api_key
from sdm_kms.snapshot import SnapshotError
from sdm_kms.workspace import Workspace

console = Console()

T = TypeVar("T")

WorkspaceOption = Annotated[
    Path | None,
    typer.Option("--workspace", "-w", help="Workspace snapshot file (default: kms.json)."),
]
ModelOption = Annotated[
    str | None,
    typer.Option("--model", "-m", help="LiteLLM model string (overrides config)."),
]


def load_settings(model: str | None = None) -> KmsConfig:
    try:
        cfg = load_config()
    except ConfigError as exc:
        console.print(err_config(str(exc)))
        raise typer.Exit(1)
    if model:
        cfg.model = model
    return cfg


def require_api_key(cfg: KmsConfig) -> None:
    try:
        validate_api_key(cfg.model)
    except EnvironmentError:
        console.print(err_no_api_key(provider_of(cfg.model)))
        raise typer.Exit(1)


def workspace_path(cfg: KmsConfig, override: Path | None) -> Path:
    return override if override is not None else Path(cfg.workspace.path)


def open_workspace(cfg: KmsConfig, override: Path | None = None) -> tuple[Workspace, Path]:
    """Load the workspace snapshot; a missing file gives an empty workspace."""
    path = workspace_path(cfg, override)
    try:
        return Workspace.load(path, cfg), path
    except SnapshotError as exc:
        console.print(err_workspace_unreadable(str(path), str(exc)))
        raise typer.Exit(1)


def run(coro: Coroutine[Any, Any, T]) -> T:
    return asyncio.run(coro)


@contextmanager
def spinner(description: str) -> Iterator[None]:
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        transient=True,
        console=console,
    ) as prog:
        prog.add_task(description, total=None)
        yield
