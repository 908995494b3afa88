"""Domain models for stored documents, chunks and query results."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Literal
from uuid import uuid4

from pydantic import BaseModel, Field


class DocumentRecord(BaseModel):
    """Metadata of one ingested document.

    Attributes
    ----------
    id:
        Opaque unique identifier.
    filename:
        Original upload name; unique across the corpus.
    content_type:
        ``"pdf"`` or ``"docx"``.
    storage_ref:
        Reference returned by the file storage for the original bytes.
    embedding_strategy:
        Identifier of the strategy that produced every chunk vector of
        this document.
    chunk_count:
        Number of committed chunks.
    created_at:
        UTC timestamp of ingestion.
    """

    id: str = Field(default_factory=lambda: str(uuid4()))
    filename: str
    content_type: Literal["pdf", "docx"]
    storage_ref: str
    embedding_strategy: str
    chunk_count: int = 0
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class ChunkRecord(BaseModel):
    """A chunk of text with its embedding, ready to persist."""

    text: str
    embedding: list[float]
    chunk_index: int
    embedding_strategy: str


class InsertOutcome(BaseModel):
    """Result of :meth:`DocumentStoreBase.insert_document`.

    ``created`` is ``False`` when a document with the same filename already
    existed; ``document_id`` then points at that existing document.
    """

    document_id: str
    created: bool


class ScoredChunk(BaseModel):
    """One chunk returned by a nearest-neighbour query."""

    id: str
    chunk_text: str
    document_id: str
    chunk_index: int
    similarity: float | None = None


class QueryResult(BaseModel):
    """Hits ordered by descending similarity, or stored order when ``fallback``."""

    hits: list[ScoredChunk] = Field(default_factory=list)
    fallback: bool = False


class SearchHit(ScoredChunk):
    """A :class:`ScoredChunk` tagged with the owning document's filename."""

    filename: str

    def short_ref(self) -> str:
        """Return a compact ``[filename§chunk]`` reference string."""
        return f"[{self.filename}§{self.chunk_index}]"


class SearchResponse(BaseModel):
    results: list[SearchHit] = Field(default_factory=list)
    fallback: bool = False
