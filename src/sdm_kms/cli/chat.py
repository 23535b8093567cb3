"""sdm-kms chat — interactive, streaming conversation over the workspace documents.

Commands inside the prompt:
  /reset   start a fresh conversation (documents are re-sent)
  /exit    leave the chat
"""

from __future__ import annotations

from typing import Annotated

import typer

from sdm_kms.cli.common import (
    ModelOption,
    WorkspaceOption,
    console,
    load_settings,
    open_workspace,
    require_api_key,
    run,
)
from sdm_kms.cli.errors import err_no_files
from sdm_kms.models import ChatMessage
from sdm_kms.workspace import Workspace

_EXIT_COMMANDS = {"/exit", "/quit"}


def chat_cmd(
    message: Annotated[
        str | None,
        typer.Option("--message", "-q", help="Ask a single question and exit."),
    ] = None,
    workspace: WorkspaceOption = None,
    model: ModelOption = None,
) -> None:
    """Chat with the documents in the workspace."""
    cfg = load_settings(model)
    ws, _ = open_workspace(cfg, workspace)
    if not ws.files:
        console.print(err_no_files())
        raise typer.Exit(1)
    require_api_key(cfg)

    if message is not None:
        reply = run(_ask(ws, message))
        if reply.is_error:
            raise typer.Exit(1)
        return

    console.print(
        f"[bold]Chatting with {len(ws.files)} document(s).[/] "
        "[dim]/reset for a new conversation, /exit to leave.[/]"
    )
    run(_repl(ws))


async def _repl(ws: Workspace) -> None:
    # One event loop for the whole conversation.
    while True:
        try:
            text = typer.prompt("\nYou", prompt_suffix=" › ")
        except (EOFError, KeyboardInterrupt, typer.Abort):
            break
        text = text.strip()
        if not text:
            continue
        if text in _EXIT_COMMANDS:
            break
        if text == "/reset":
            ws.sessions.reset()
            console.print("[dim]Conversation reset.[/]")
            continue
        await _ask(ws, text)


async def _ask(ws: Workspace, text: str) -> ChatMessage:
    console.print("[bold cyan]Assistant ›[/] ", end="")

    def _on_error(error: str) -> None:
        console.print(f"\n[red]Error:[/] {error}")

    return await ws.sessions.stream_response(
        text,
        ws.files,
        on_chunk=lambda delta: console.print(delta, end="", markup=False, highlight=False),
        on_complete=lambda: console.print(),
        on_error=_on_error,
    )
