"""Document-scoped semantic search.

:class:`DocumentSearcher` is the query-side counterpart of the ingestion
pipeline: it embeds a question with the *same* strategy the target
document was embedded with, runs the store's nearest-neighbour query and
tags every hit with its owning filename.

Usage::

    searcher = DocumentSearcher(store, gateway)
    response = searcher.search("What is the refund policy?", document_id)
    for hit in response.results:
        print(hit.short_ref(), hit.chunk_text[:80])
"""

from __future__ import annotations

import logging

from docchat.config import settings
from docchat.errors import EmbeddingProviderError
from docchat.ingestion.embedder import EmbeddingGateway
from docchat.retrieval.base import DocumentStoreBase
from docchat.retrieval.models import QueryResult, SearchHit, SearchResponse

logger = logging.getLogger(__name__)


class DocumentSearcher:
    """High-level search over one document at a time.

    Parameters
    ----------
    store:
        A concrete document-store backend.
    gateway:
        The embedding gateway used at ingestion time.
    match_count:
        Number of nearest chunks requested from the store.
    match_threshold:
        Minimum similarity; hits below this are discarded.
    """

    def __init__(
        self,
        store: DocumentStoreBase,
        gateway: EmbeddingGateway,
        *,
        match_count: int = settings.search_match_count,
        match_threshold: float = settings.search_match_threshold,
    ) -> None:
        self._store = store
        self._gateway = gateway
        self.match_count = match_count
        self.match_threshold = match_threshold

    def search(self, query: str, document_id: str, *, k: int | None = None) -> SearchResponse:
        """Return the chunks of *document_id* most similar to *query*.

        Unknown documents yield an empty response.  If the query cannot be
        embedded with the document's strategy, the first chunks of the
        document are returned unranked with ``fallback=True``.
        """
        k = k or self.match_count
        document = self._store.get_document(document_id)
        if document is None:
            logger.info("Search for unknown document %s", document_id)
            return SearchResponse()

        try:
            query_embedding = self._gateway.embed_query(query, document.embedding_strategy)
        except EmbeddingProviderError:
            logger.warning(
                "Cannot embed query with %s; returning unranked chunks of %s",
                document.embedding_strategy,
                document_id,
                exc_info=True,
            )
            result = self._store.first_chunks(document_id, k)
        else:
            result = self._store.query_nearest(
                document_id,
                query_embedding,
                k,
                self.match_threshold,
                strategy=document.embedding_strategy,
            )

        logger.info(
            "Search in %s returned %d hit(s)%s",
            document.filename,
            len(result.hits),
            " (unranked fallback)" if result.fallback else "",
        )
        return self._to_response(result, document.filename)

    def _to_response(self, result: QueryResult, filename: str) -> SearchResponse:
        return SearchResponse(
            results=[SearchHit(**hit.model_dump(), filename=filename) for hit in result.hits],
            fallback=result.fallback,
        )
