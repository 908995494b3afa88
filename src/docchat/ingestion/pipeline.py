"""Upload ingestion: validate → store file → extract → chunk → embed → persist.

Chunks are committed before the document record, so a document never
becomes visible (listable, resolvable by filename) until all of its
chunks exist.  Any failure after the file was stored removes the file
and whatever chunks were written.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from uuid import uuid4

from docchat.config import settings
from docchat.errors import DocChatError, ExtractionError, StoreError, ValidationError
from docchat.ingestion.chunker import chunk_text
from docchat.ingestion.embedder import EmbeddingGateway
from docchat.ingestion.loader import content_type_for, extract_text
from docchat.ingestion.storage import LocalFileStorage
from docchat.retrieval.base import DocumentStoreBase
from docchat.retrieval.models import ChunkRecord, DocumentRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IngestionResult:
    """Outcome of one upload.

    ``skipped`` is ``True`` when a document with the same filename already
    existed; ``chunk_count`` is then ``None``.
    """

    document_id: str
    filename: str
    chunk_count: int | None = None
    skipped: bool = False


class IngestionPipeline:
    """Turns an uploaded file into a stored, searchable document.

    Parameters
    ----------
    store:
        Destination document store.
    gateway:
        Embedding gateway; its strategy id is recorded on every chunk.
    file_storage:
        Where the original bytes are kept.
    extractor:
        ``(path, filename) -> text`` callable.
    chunk_size / chunk_overlap:
        Window parameters for :func:`chunk_text`.
    """

    def __init__(
        self,
        store: DocumentStoreBase,
        gateway: EmbeddingGateway,
        file_storage: LocalFileStorage,
        *,
        extractor: Callable[[Path, str], str] = extract_text,
        chunk_size: int = settings.chunk_size,
        chunk_overlap: int = settings.chunk_overlap,
    ) -> None:
        self._store = store
        self._gateway = gateway
        self._files = file_storage
        self._extract = extractor
        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap
        self._lock = threading.Lock()
        self._in_flight: set[str] = set()

    def ingest(self, filename: str, data: bytes) -> IngestionResult:
        """Run the whole pipeline for one upload.

        Raises
        ------
        ValidationError
            Missing filename or unsupported extension.
        ExtractionError
            Unreadable or empty document.
        EmbeddingProviderError
            Provider failure with fallback disabled.
        StoreError
            File or chunk persistence failure.
        """
        if not filename:
            raise ValidationError("No file provided")
        content_type = content_type_for(filename)

        existing = self._store.get_document_by_filename(filename)
        if existing is not None:
            logger.info("Document %r already exists (%s); skipping", filename, existing.id)
            return IngestionResult(document_id=existing.id, filename=existing.filename, skipped=True)

        with self._lock:
            if filename in self._in_flight:
                raise ValidationError(f"{filename!r} is already being processed")
            self._in_flight.add(filename)
        try:
            return self._ingest_new(filename, content_type, data)
        finally:
            with self._lock:
                self._in_flight.discard(filename)

    # -- internals ------------------------------------------------------------

    def _ingest_new(self, filename: str, content_type: str, data: bytes) -> IngestionResult:
        document_id = str(uuid4())
        storage_ref = self._files.save(document_id, filename, data)
        chunks_written = False
        try:
            text = self._extract(self._files.path_for(storage_ref), filename)
            if not text or not text.strip():
                raise ExtractionError("No text could be extracted from the document")

            chunks = chunk_text(text, self.chunk_size, self.chunk_overlap)
            if not chunks:
                raise DocChatError("Failed to create text chunks", stage="chunk")

            batch = self._gateway.embed([c.text for c in chunks])
            if batch.fallback:
                logger.warning(
                    "Document %r embedded with fallback strategy %s", filename, batch.strategy
                )

            records = [
                ChunkRecord(
                    text=chunk.text,
                    embedding=vector,
                    chunk_index=chunk.index,
                    embedding_strategy=batch.strategy,
                )
                for chunk, vector in zip(chunks, batch.vectors)
            ]
            chunks_written = True
            self._store.insert_chunks(document_id, records)

            outcome = self._store.insert_document(
                DocumentRecord(
                    id=document_id,
                    filename=filename,
                    content_type=content_type,
                    storage_ref=storage_ref,
                    embedding_strategy=batch.strategy,
                    chunk_count=len(records),
                )
            )
        except Exception as exc:
            self._rollback(document_id, storage_ref, chunks_written)
            if isinstance(exc, DocChatError):
                logger.error("Ingestion of %r failed at stage %s: %s", filename, exc.stage, exc)
                raise
            logger.exception("Ingestion of %r failed", filename)
            raise StoreError(f"Failed to ingest document: {exc}") from exc

        if not outcome.created:
            # Lost a race against a concurrent upload of the same filename.
            self._rollback(document_id, storage_ref, chunks_written)
            return IngestionResult(document_id=outcome.document_id, filename=filename, skipped=True)

        logger.info("Ingested %r as %s (%d chunks)", filename, document_id, len(records))
        return IngestionResult(document_id=document_id, filename=filename, chunk_count=len(records))

    def _rollback(self, document_id: str, storage_ref: str, chunks_written: bool) -> None:
        if chunks_written:
            try:
                self._store.delete_chunks(document_id)
            except Exception:
                logger.exception("Failed to remove chunks of %s during rollback", document_id)
        self._files.delete(storage_ref)
