"""In-process document store for local development and tests."""

from __future__ import annotations

import logging
import math
import threading

from docchat.errors import StoreError
from docchat.retrieval.base import DocumentStoreBase
from docchat.retrieval.models import (
    ChunkRecord,
    DocumentRecord,
    InsertOutcome,
    QueryResult,
    ScoredChunk,
)

logger = logging.getLogger(__name__)


def cosine_similarity(a: list[float], b: list[float]) -> float:
    if len(a) != len(b):
        raise StoreError(f"Vector dimension mismatch: {len(a)} != {len(b)}", stage="search")
    dot = sum(x * y for x, y in zip(a, b))
    norm = math.sqrt(sum(x * x for x in a)) * math.sqrt(sum(y * y for y in b))
    if norm == 0.0:
        return 0.0
    return dot / norm


class InMemoryDocumentStore(DocumentStoreBase):
    """Dict-backed store guarded by a single re-entrant lock.

    Readers get snapshot copies, so concurrent queries never observe a
    half-written chunk batch.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._documents: dict[str, DocumentRecord] = {}
        self._by_filename: dict[str, str] = {}
        self._chunks: dict[str, list[ScoredChunk]] = {}
        self._embeddings: dict[str, list[list[float]]] = {}

    # -- writes ---------------------------------------------------------------

    def insert_document(self, record: DocumentRecord) -> InsertOutcome:
        with self._lock:
            existing_id = self._by_filename.get(record.filename)
            if existing_id is not None:
                logger.info("Document %r already exists as %s", record.filename, existing_id)
                return InsertOutcome(document_id=existing_id, created=False)
            self._documents[record.id] = record
            self._by_filename[record.filename] = record.id
            return InsertOutcome(document_id=record.id, created=True)

    def insert_chunks(self, document_id: str, chunks: list[ChunkRecord]) -> None:
        # Build the whole batch before publishing it under the lock.
        staged: list[ScoredChunk] = []
        vectors: list[list[float]] = []
        dim: int | None = None
        for chunk in chunks:
            if dim is None:
                dim = len(chunk.embedding)
            elif len(chunk.embedding) != dim:
                raise StoreError(
                    f"Chunk {chunk.chunk_index} has dimension {len(chunk.embedding)}, expected {dim}"
                )
            staged.append(
                ScoredChunk(
                    id=f"{document_id}_{chunk.chunk_index}",
                    chunk_text=chunk.text,
                    document_id=document_id,
                    chunk_index=chunk.chunk_index,
                )
            )
            vectors.append(list(chunk.embedding))

        with self._lock:
            if document_id in self._chunks:
                raise StoreError(f"Chunks for document {document_id} already exist")
            self._chunks[document_id] = staged
            self._embeddings[document_id] = vectors

    def delete_chunks(self, document_id: str) -> None:
        with self._lock:
            self._chunks.pop(document_id, None)
            self._embeddings.pop(document_id, None)

    # -- reads ----------------------------------------------------------------

    def _nearest(self, document_id: str, query_embedding: list[float], k: int) -> list[ScoredChunk]:
        with self._lock:
            chunks = list(self._chunks.get(document_id, []))
            vectors = list(self._embeddings.get(document_id, []))

        scored = [
            chunk.model_copy(update={"similarity": cosine_similarity(query_embedding, vector)})
            for chunk, vector in zip(chunks, vectors)
        ]
        scored.sort(key=lambda c: c.similarity, reverse=True)
        return scored[:k]

    def first_chunks(self, document_id: str, k: int) -> QueryResult:
        with self._lock:
            chunks = list(self._chunks.get(document_id, []))
        chunks.sort(key=lambda c: c.chunk_index)
        return QueryResult(hits=chunks[:k], fallback=True)

    def list_documents(self) -> list[DocumentRecord]:
        with self._lock:
            return list(self._documents.values())

    def get_document(self, document_id: str) -> DocumentRecord | None:
        with self._lock:
            return self._documents.get(document_id)

    def get_document_by_filename(self, filename: str) -> DocumentRecord | None:
        with self._lock:
            document_id = self._by_filename.get(filename)
            return self._documents.get(document_id) if document_id else None

    def chunk_count(self, document_id: str) -> int:
        with self._lock:
            return len(self._chunks.get(document_id, []))

    def health_check(self) -> bool:
        return True
