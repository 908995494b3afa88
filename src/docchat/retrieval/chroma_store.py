"""Chroma implementation of the document-store abstraction.

Two collections back the store:

* ``<name>_chunks`` — one record per chunk, cosine space, metadata
  ``document_id`` / ``chunk_index`` / ``embedding_strategy``.
* ``<name>_documents`` — the document registry.  Chroma requires a vector
  on every record, so registry rows carry a constant placeholder.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime
from typing import Any

import chromadb

from docchat.config import settings
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

_REGISTRY_PLACEHOLDER = [1.0]


def _document_to_metadata(record: DocumentRecord) -> dict[str, Any]:
    return {
        "filename": record.filename,
        "content_type": record.content_type,
        "storage_ref": record.storage_ref,
        "embedding_strategy": record.embedding_strategy,
        "chunk_count": record.chunk_count,
        "created_at": record.created_at.isoformat(),
    }


def _metadata_to_document(document_id: str, meta: dict[str, Any]) -> DocumentRecord:
    return DocumentRecord(
        id=document_id,
        filename=meta["filename"],
        content_type=meta["content_type"],
        storage_ref=meta["storage_ref"],
        embedding_strategy=meta["embedding_strategy"],
        chunk_count=meta.get("chunk_count", 0),
        created_at=datetime.fromisoformat(meta["created_at"]),
    )


class ChromaDocumentStore(DocumentStoreBase):
    """Chroma-backed document store.

    Parameters
    ----------
    collection_name:
        Prefix of the two Chroma collections.
    client:
        An existing Chroma client.  When *None* an ``HttpClient`` is
        created for *host* / *port*.
    upsert_batch_size:
        Max records per ``add`` call.
    """

    def __init__(
        self,
        collection_name: str = settings.chroma_collection,
        *,
        client: Any | None = None,
        host: str = settings.chroma_host,
        port: int = settings.chroma_port,
        upsert_batch_size: int = 5000,
    ) -> None:
        self.collection_name = collection_name
        self._client = client if client is not None else chromadb.HttpClient(host=host, port=port)
        self._chunks = self._client.get_or_create_collection(
            f"{collection_name}_chunks",
            metadata={"hnsw:space": "cosine"},
        )
        self._registry = self._client.get_or_create_collection(f"{collection_name}_documents")
        self._write_lock = threading.Lock()
        self.upsert_batch_size = upsert_batch_size

    # -- writes ---------------------------------------------------------------

    def insert_document(self, record: DocumentRecord) -> InsertOutcome:
        with self._write_lock:
            existing = self.get_document_by_filename(record.filename)
            if existing is not None:
                logger.info("Document %r already exists as %s", record.filename, existing.id)
                return InsertOutcome(document_id=existing.id, created=False)
            try:
                self._registry.add(
                    ids=[record.id],
                    embeddings=[_REGISTRY_PLACEHOLDER],
                    metadatas=[_document_to_metadata(record)],
                    documents=[record.filename],
                )
            except Exception as exc:
                raise StoreError(f"Failed to save document metadata: {exc}") from exc
        return InsertOutcome(document_id=record.id, created=True)

    def insert_chunks(self, document_id: str, chunks: list[ChunkRecord]) -> None:
        ids = [f"{document_id}_{c.chunk_index}" for c in chunks]
        metadatas = [
            {
                "document_id": document_id,
                "chunk_index": c.chunk_index,
                "embedding_strategy": c.embedding_strategy,
            }
            for c in chunks
        ]
        try:
            for start in range(0, len(chunks), self.upsert_batch_size):
                end = start + self.upsert_batch_size
                self._chunks.add(
                    ids=ids[start:end],
                    embeddings=[c.embedding for c in chunks[start:end]],
                    metadatas=metadatas[start:end],
                    documents=[c.text for c in chunks[start:end]],
                )
        except Exception as exc:
            logger.error("Chunk insert failed for %s; rolling back", document_id)
            self.delete_chunks(document_id)
            raise StoreError(f"Failed to store chunks: {exc}") from exc
        logger.info("Indexed %d chunks for document %s", len(chunks), document_id)

    def delete_chunks(self, document_id: str) -> None:
        self._chunks.delete(where={"document_id": document_id})

    # -- reads ----------------------------------------------------------------

    def _nearest(self, document_id: str, query_embedding: list[float], k: int) -> list[ScoredChunk]:
        results = self._chunks.query(
            query_embeddings=[query_embedding],
            n_results=k,
            where={"document_id": document_id},
            include=["documents", "metadatas", "distances"],
        )

        ids = results.get("ids", [[]])[0]
        docs = results.get("documents", [[]])[0]
        metas = results.get("metadatas", [[]])[0]
        distances = results.get("distances", [[]])[0]

        hits: list[ScoredChunk] = []
        for chunk_id, content, meta, dist in zip(ids, docs, metas, distances):
            meta = meta or {}
            # Cosine space: distance = 1 - cosine similarity.
            hits.append(
                ScoredChunk(
                    id=chunk_id,
                    chunk_text=content or "",
                    document_id=meta.get("document_id", ""),
                    chunk_index=meta.get("chunk_index", -1),
                    similarity=1.0 - dist,
                )
            )
        return hits

    def first_chunks(self, document_id: str, k: int) -> QueryResult:
        results = self._chunks.get(
            where={"document_id": document_id},
            include=["documents", "metadatas"],
        )
        hits = [
            ScoredChunk(
                id=chunk_id,
                chunk_text=content or "",
                document_id=(meta or {}).get("document_id", document_id),
                chunk_index=(meta or {}).get("chunk_index", -1),
            )
            for chunk_id, content, meta in zip(
                results.get("ids", []),
                results.get("documents", []),
                results.get("metadatas", []),
            )
        ]
        hits.sort(key=lambda h: h.chunk_index)
        return QueryResult(hits=hits[:k], fallback=True)

    def list_documents(self) -> list[DocumentRecord]:
        results = self._registry.get(include=["metadatas"])
        documents = [
            _metadata_to_document(doc_id, meta)
            for doc_id, meta in zip(results.get("ids", []), results.get("metadatas", []))
        ]
        documents.sort(key=lambda d: d.created_at)
        return documents

    def get_document(self, document_id: str) -> DocumentRecord | None:
        results = self._registry.get(ids=[document_id], include=["metadatas"])
        if not results.get("ids"):
            return None
        return _metadata_to_document(results["ids"][0], results["metadatas"][0])

    def get_document_by_filename(self, filename: str) -> DocumentRecord | None:
        results = self._registry.get(where={"filename": filename}, limit=1, include=["metadatas"])
        if not results.get("ids"):
            return None
        return _metadata_to_document(results["ids"][0], results["metadatas"][0])

    def health_check(self) -> bool:
        try:
            self._client.heartbeat()
            return True
        except Exception:
            logger.warning("Chroma health-check failed", exc_info=True)
            return False
