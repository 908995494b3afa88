"""Abstract base class for document-store backends.

A document store persists two related record sets — documents and their
chunks (text + embedding) — and answers nearest-neighbour queries that
are strictly scoped to one document.  Adding a backend only requires
subclassing :class:`DocumentStoreBase` and implementing the abstract
methods; the ingestion pipeline and the retrieval tools are
backend-agnostic.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from docchat.errors import EmbeddingStrategyMismatchError, StoreError
from docchat.retrieval.models import (
    ChunkRecord,
    DocumentRecord,
    InsertOutcome,
    QueryResult,
    ScoredChunk,
)

logger = logging.getLogger(__name__)


class DocumentStoreBase(ABC):
    """Backend-agnostic document + chunk store."""

    # -- required overrides ---------------------------------------------------

    @abstractmethod
    def insert_document(self, record: DocumentRecord) -> InsertOutcome:
        """Register *record* unless its filename already exists.

        Returns the id of the stored document; ``created`` is ``False`` when
        an existing document with the same filename was found instead.
        """
        ...

    @abstractmethod
    def insert_chunks(self, document_id: str, chunks: list[ChunkRecord]) -> None:
        """Persist *chunks* for *document_id* atomically.

        On any failure nothing of the batch may remain and
        :class:`StoreError` is raised.
        """
        ...

    @abstractmethod
    def _nearest(
        self,
        document_id: str,
        query_embedding: list[float],
        k: int,
    ) -> list[ScoredChunk]:
        """Backend similarity query, restricted to *document_id*."""
        ...

    @abstractmethod
    def first_chunks(self, document_id: str, k: int) -> QueryResult:
        """Return the first *k* chunks of *document_id* in stored order."""
        ...

    @abstractmethod
    def list_documents(self) -> list[DocumentRecord]:
        """All documents in insertion order."""
        ...

    @abstractmethod
    def get_document(self, document_id: str) -> DocumentRecord | None:
        ...

    @abstractmethod
    def get_document_by_filename(self, filename: str) -> DocumentRecord | None:
        ...

    @abstractmethod
    def delete_chunks(self, document_id: str) -> None:
        """Remove every chunk of *document_id* (no-op if there are none)."""
        ...

    @abstractmethod
    def health_check(self) -> bool:
        """Return ``True`` when the backend is reachable and ready."""
        ...

    # -- shared behaviour -----------------------------------------------------

    def query_nearest(
        self,
        document_id: str,
        query_embedding: list[float],
        k: int = 10,
        similarity_threshold: float = 0.0,
        *,
        strategy: str,
    ) -> QueryResult:
        """Top-*k* chunks of *document_id* by descending similarity.

        Hits whose similarity is below *similarity_threshold* are dropped.
        When the backend query fails, the first *k* chunks in stored order
        are returned with ``fallback=True``.

        Raises
        ------
        EmbeddingStrategyMismatchError
            If *strategy* differs from the one recorded on the document.
        """
        document = self.get_document(document_id)
        if document is not None and document.embedding_strategy != strategy:
            raise EmbeddingStrategyMismatchError(
                f"Document {document_id} was embedded with {document.embedding_strategy!r}; "
                f"refusing to compare against a {strategy!r} query vector"
            )

        try:
            raw_hits = self._nearest(document_id, query_embedding, k)
        except Exception:
            logger.warning(
                "Similarity search failed for document %s; returning unranked chunks",
                document_id,
                exc_info=True,
            )
            try:
                return self.first_chunks(document_id, k)
            except Exception as exc:
                raise StoreError("Failed to search chunks", stage="search") from exc

        hits: list[ScoredChunk] = []
        for hit in raw_hits:
            if hit.document_id != document_id:
                logger.error(
                    "Backend returned chunk %s of document %s for a query scoped to %s; dropping it",
                    hit.id,
                    hit.document_id,
                    document_id,
                )
                continue
            if hit.similarity is not None and hit.similarity < similarity_threshold:
                continue
            hits.append(hit)

        hits.sort(key=lambda h: h.similarity if h.similarity is not None else float("-inf"), reverse=True)
        return QueryResult(hits=hits[:k])
