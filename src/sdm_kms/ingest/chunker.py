"""Break-safe text chunker for model-sized ingestion segments."""

from __future__ import annotations

DEFAULT_CHUNK_SIZE = 50_000
_FLOOR_RATIO = 0.8


def chunk_text(text: str, max_size: int = DEFAULT_CHUNK_SIZE) -> list[str]:
    """Split *text* into contiguous pieces of at most *max_size* characters.

    Break point per window, in order of preference:
      1. just after the last newline in the window,
      2. just after the last period in the window,
      3. the hard window boundary (may split a token).
    A newline or period is only used if it lies beyond 80 % of the window,
    which keeps pieces from degenerating into tiny fragments.

    ``"".join(chunk_text(t)) == t`` always holds.
    """
    if max_size < 1:
        raise ValueError("max_size must be >= 1")
    if len(text) <= max_size:
        return [text]

    pieces: list[str] = []
    start = 0
    length = len(text)

    while start < length:
        end = min(start + max_size, length)
        if end < length:
            floor = start + max_size * _FLOOR_RATIO
            newline = text.rfind("\n", start, end)
            if newline > floor:
                end = newline + 1
            else:
                period = text.rfind(".", start, end)
                if period > floor:
                    end = period + 1
        pieces.append(text[start:end])
        start = end

    return pieces
