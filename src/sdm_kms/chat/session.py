"""Chat session reuse keyed by a fingerprint of the active document set.

A ``SessionManager`` owns at most one live ``ChatSession``. The session is
rebuilt (system instruction + seeded file content) only when the set of files
changes; otherwise it is reused as-is so conversational context survives and
file content is not re-sent as a new seed.

The manager is not re-entrant: one stream at a time per manager.
"""

from __future__ import annotations

import hashlib
import logging
from collections.abc import AsyncGenerator, Callable
from contextlib import aclosing
from dataclasses import dataclass, field
from typing import Any

from sdm_kms.config import DEFAULT_MODEL, ChatCfg
from sdm_kms.llm import client
from sdm_kms.llm.client import BinaryPart, Part, TextPart, build_content
from sdm_kms.models import ChatMessage, LocalFile

logger = logging.getLogger(__name__)

ACKNOWLEDGEMENT = "I have received the documents and their context."
TRUNCATION_MARKER = "\n...(Truncated for Chat)..."

_PREAMBLE = "You are a helpful, intelligent research assistant capable of analyzing documents.\n"
_RAW_RULES = """RULES:
1. Strictly use the provided file content as your primary source of truth.
2. If the answer is not in the files, state that clearly.
3. Be concise but thorough."""


class SessionBusyError(RuntimeError):
    """Raised when send() is called while another stream is in flight."""


def fingerprint(files: list[LocalFile]) -> str:
    """SHA-256 of the ``name-size`` pairs of *files*, in order."""
    key = "|".join(f"{f.name}-{f.size}" for f in files)
    return hashlib.sha256(key.encode("utf-8")).hexdigest()


def system_instruction(files: list[LocalFile]) -> str:
    """Condensed summaries once every file is ingested, raw-content rules otherwise."""
    text = _PREAMBLE
    if files and all(f.processed_data is not None for f in files):
        text += "Here is a summary of the available knowledge base:\n"
        for f in files:
            text += f"- File: {f.name}\n  Summary: {f.processed_data.summary}\n"
        text += (
            "\nUse this high-level context to answer questions. If specific details are "
            "needed, you can refer to the raw file content provided in the history."
        )
    else:
        text += _RAW_RULES
    return text


def file_parts(files: list[LocalFile], max_chars: int = 200_000) -> list[Part]:
    """Content parts for *files*: binary inline, text truncated to *max_chars*."""
    if not files:
        return []
    parts: list[Part] = [TextPart("Here are the uploaded documents you need to analyze:\n")]
    for index, f in enumerate(files, start=1):
        header = f"\n--- FILE {index}: {f.name} ---\n"
        if f.is_binary:
            parts.append(TextPart(header))
            parts.append(BinaryPart(mime_type=f.type, data=f.content))
        else:
            content = f.content
            if len(content) > max_chars:
                content = content[:max_chars] + TRUNCATION_MARKER
            parts.append(TextPart(header + content))
    return parts


@dataclass
class ChatSession:
    """One multi-turn conversation: system instruction + message history."""

    model: str
    system: str
    history: list[dict[str, Any]] = field(default_factory=list)
    temperature: float = 0.5

    def messages_for(self, user_message: str) -> list[dict[str, Any]]:
        return [
            {"role": "system", "content": self.system},
            *self.history,
            {"role": "user", "content": user_message},
        ]

    def record_turn(self, user_message: str, reply: str) -> None:
        self.history.append({"role": "user", "content": user_message})
        self.history.append({"role": "assistant", "content": reply})


class SessionManager:
    """Create, reuse and reset the chat session for the current document set.

    Args:
        model:  LiteLLM model string.
        config: Chat temperature and per-file context limit.
    """

    def __init__(self, model: str = DEFAULT_MODEL, config: ChatCfg | None = None) -> None:
        self._model = model
        self._config = config or ChatCfg()
        self.session: ChatSession | None = None
        self.fingerprint: str = ""
        self._busy = False

    def reset(self) -> None:
        """Discard the session; the next send() re-seeds from scratch."""
        self.session = None
        self.fingerprint = ""

    def create(self, files: list[LocalFile]) -> ChatSession:
        """Build a fresh session seeded with the content of *files*."""
        parts = file_parts(files, self._config.max_context_chars)
        history: list[dict[str, Any]] = []
        if parts:
            history = [
                {"role": "user", "content": build_content(parts)},
                {"role": "assistant", "content": ACKNOWLEDGEMENT},
            ]
        session = ChatSession(
            model=self._model,
            system=system_instruction(files),
            history=history,
            temperature=self._config.temperature,
        )
        logger.info("New chat session seeded with %d file(s)", len(files))
        return session

    def session_for(self, files: list[LocalFile]) -> ChatSession:
        """Return the live session, replacing it if the file set changed."""
        fp = fingerprint(files)
        if self.session is None or fp != self.fingerprint:
            self.session = self.create(files)
            self.fingerprint = fp
        return self.session

    def send(self, message: str, files: list[LocalFile]) -> ReplyStream:
        """Stream reply deltas for *message*. Forward-only; not restartable.

        The busy check runs on the first ``__anext__``. Breaking out of the
        loop, calling ``aclose()`` or dropping the stream frees the manager.

        Raises:
            SessionBusyError: Another stream on this manager is still running.
        """
        return ReplyStream(self, message, files)

    async def _generate(self, message: str, files: list[LocalFile]) -> AsyncGenerator[str, None]:
        session = self.session_for(files)
        reply: list[str] = []
        async for delta in client.generate_stream(
            session.messages_for(message),
            model=session.model,
            temperature=session.temperature,
        ):
            reply.append(delta)
            yield delta
        session.record_turn(message, "".join(reply))

    async def stream_response(
        self,
        message: str,
        files: list[LocalFile],
        on_chunk: Callable[[str], None],
        on_complete: Callable[[], None],
        on_error: Callable[[str], None],
    ) -> ChatMessage:
        """Callback wrapper around send(); returns the bot message.

        On error the text streamed so far is kept and the message is flagged.
        """
        received: list[str] = []
        try:
            async with aclosing(self.send(message, files)) as stream:
                async for delta in stream:
                    received.append(delta)
                    on_chunk(delta)
        except Exception as exc:
            logger.error("Chat stream failed: %s", exc)
            error = str(exc) or "An error occurred while contacting the model."
            on_error(error)
            return ChatMessage(sender="bot", text="".join(received), is_error=True)
        on_complete()
        return ChatMessage(sender="bot", text="".join(received))


class ReplyStream:
    """Async iterator over one reply; holds the manager's busy flag while open."""

    def __init__(self, manager: SessionManager, message: str, files: list[LocalFile]) -> None:
        self._manager = manager
        self._message = message
        self._files = files
        self._gen: AsyncGenerator[str, None] | None = None
        self._holding = False
        self._closed = False

    def __aiter__(self) -> ReplyStream:
        return self

    async def __anext__(self) -> str:
        if self._closed:
            raise StopAsyncIteration
        if self._gen is None:
            if self._manager._busy:
                raise SessionBusyError("A chat response is already streaming on this session.")
            self._manager._busy = True
            self._holding = True
            self._gen = self._manager._generate(self._message, self._files)
        try:
            return await self._gen.__anext__()
        except BaseException:
            self._closed = True
            self._release()
            raise

    async def aclose(self) -> None:
        self._closed = True
        try:
            if self._gen is not None:
                await self._gen.aclose()
        finally:
            self._release()

    def _release(self) -> None:
        if self._holding:
            self._holding = False
            self._manager._busy = False

    def __del__(self) -> None:
        self._release()
