"""Shared pytest configuration and fixtures."""

from __future__ import annotations

import pytest

from docchat.ingestion.embedder import EmbeddingGateway
from docchat.retrieval.memory_store import InMemoryDocumentStore
from tests.fakes import KeywordEmbeddings


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "integration: marks tests requiring external services")


@pytest.fixture()
def keyword_embeddings() -> KeywordEmbeddings:
    return KeywordEmbeddings()


@pytest.fixture()
def gateway(keyword_embeddings: KeywordEmbeddings) -> EmbeddingGateway:
    return EmbeddingGateway(lambda: keyword_embeddings, model_name="keyword-test", batch_size=4)


@pytest.fixture()
def memory_store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()
