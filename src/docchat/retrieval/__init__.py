"""
Retrieval — document store, nearest-neighbour queries and search.

The store is hidden behind :class:`DocumentStoreBase` so that ingestion
and the chat agent never need to know which database backs retrieval.

Public surface
--------------
- :class:`DocumentSearcher` — document-scoped search with filename tagging.
- :class:`DocumentStoreBase` — abstract backend.
- :class:`InMemoryDocumentStore` — in-process backend.
- :class:`ChromaDocumentStore` — default Chroma backend.
- :func:`build_store` — backend factory driven by settings.
"""

from __future__ import annotations

from docchat.config import Settings, settings as default_settings
from docchat.errors import ConfigurationError
from docchat.retrieval.base import DocumentStoreBase
from docchat.retrieval.memory_store import InMemoryDocumentStore
from docchat.retrieval.models import (
    ChunkRecord,
    DocumentRecord,
    InsertOutcome,
    QueryResult,
    ScoredChunk,
    SearchHit,
    SearchResponse,
)
from docchat.retrieval.retriever import DocumentSearcher

__all__ = [
    "ChromaDocumentStore",
    "ChunkRecord",
    "DocumentRecord",
    "DocumentSearcher",
    "DocumentStoreBase",
    "InMemoryDocumentStore",
    "InsertOutcome",
    "QueryResult",
    "ScoredChunk",
    "SearchHit",
    "SearchResponse",
    "build_store",
]


def build_store(config: Settings = default_settings) -> DocumentStoreBase:
    """Instantiate the backend named by ``config.store_backend``."""
    if config.store_backend == "memory":
        return InMemoryDocumentStore()
    if config.store_backend == "chroma":
        from docchat.retrieval.chroma_store import ChromaDocumentStore

        return ChromaDocumentStore(
            config.chroma_collection,
            host=config.chroma_host,
            port=config.chroma_port,
        )
    raise ConfigurationError(f"Unsupported store_backend={config.store_backend!r}")


def __getattr__(name: str):  # noqa: ANN001
    """Lazy-import ChromaDocumentStore to avoid pulling in chromadb at import time."""
    if name == "ChromaDocumentStore":
        from docchat.retrieval.chroma_store import ChromaDocumentStore

        return ChromaDocumentStore
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
