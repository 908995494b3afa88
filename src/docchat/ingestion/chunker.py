"""Fixed-size sliding-window text chunking.

Chunks are character windows of ``chunk_size`` that advance by
``chunk_size - chunk_overlap``.  Windows ignore sentence and word
boundaries, so a chunk may start or end mid-word.
"""

from __future__ import annotations

from dataclasses import dataclass

from docchat.errors import ConfigurationError


@dataclass(frozen=True)
class TextChunk:
    """One window of the source text.

    Attributes
    ----------
    text:
        The raw character span.
    index:
        0-based position of the chunk in the document.
    """

    text: str
    index: int


def chunk_text(text: str, chunk_size: int = 1000, chunk_overlap: int = 200) -> list[TextChunk]:
    """Split *text* into overlapping fixed-size windows.

    Chunk ``i`` starts at offset ``i * (chunk_size - chunk_overlap)``.  The
    final chunk may be shorter than ``chunk_size``.  Empty text yields an
    empty list.

    Raises
    ------
    ConfigurationError
        If ``chunk_overlap`` is negative or not smaller than ``chunk_size``.
    """
    if chunk_overlap < 0 or chunk_size <= chunk_overlap:
        raise ConfigurationError(
            f"chunk_size must be greater than chunk_overlap >= 0 "
            f"(got chunk_size={chunk_size}, chunk_overlap={chunk_overlap})",
            stage="chunk",
        )

    step = chunk_size - chunk_overlap
    chunks: list[TextChunk] = []
    for index, start in enumerate(range(0, len(text), step)):
        chunks.append(TextChunk(text=text[start : start + chunk_size], index=index))
    return chunks
