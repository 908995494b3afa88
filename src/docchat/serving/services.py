"""Service wiring — the process entry point owns every long-lived client.

:func:`build_services` constructs the store, the embedding gateway, the
chat model and everything built on top of them exactly once.  Request
handlers receive the container; nothing reaches for module-level
provider singletons.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from docchat.agent.llm import get_llm
from docchat.agent.orchestrator import ChatOrchestrator
from docchat.agent.tools import RetrievalTools
from docchat.config import Settings, settings as default_settings
from docchat.ingestion.embedder import EmbeddingGateway, get_embedding_function
from docchat.ingestion.pipeline import IngestionPipeline
from docchat.ingestion.storage import LocalFileStorage
from docchat.retrieval import DocumentSearcher, DocumentStoreBase, build_store

if TYPE_CHECKING:
    from langchain_core.language_models import BaseChatModel

logger = logging.getLogger(__name__)


@dataclass
class Services:
    store: DocumentStoreBase
    gateway: EmbeddingGateway
    searcher: DocumentSearcher
    tools: RetrievalTools
    pipeline: IngestionPipeline
    orchestrator: ChatOrchestrator


def build_services(
    config: Settings = default_settings,
    *,
    store: DocumentStoreBase | None = None,
    gateway: EmbeddingGateway | None = None,
    llm: BaseChatModel | None = None,
) -> Services:
    """Create the service container; explicit arguments override the defaults."""
    store = store if store is not None else build_store(config)
    if gateway is None:
        gateway = EmbeddingGateway(
            lambda: get_embedding_function(config.embedding_model),
            model_name=config.embedding_model,
            batch_size=config.embedding_batch_size,
            fallback_dim=config.fallback_embedding_dim,
            allow_fallback=config.allow_embedding_fallback,
            retry_cooldown_seconds=config.embedding_retry_cooldown_seconds,
        )
    searcher = DocumentSearcher(
        store,
        gateway,
        match_count=config.search_match_count,
        match_threshold=config.search_match_threshold,
    )
    tools = RetrievalTools(searcher, store, result_limit=config.search_result_limit)
    pipeline = IngestionPipeline(
        store,
        gateway,
        LocalFileStorage(config.upload_dir),
        chunk_size=config.chunk_size,
        chunk_overlap=config.chunk_overlap,
    )
    orchestrator = ChatOrchestrator(
        llm if llm is not None else get_llm(config),
        tools,
        short_circuit_empty_retrieval=config.short_circuit_empty_retrieval,
    )
    logger.info(
        "Services ready (store=%s, embedding=%s, model=%s)",
        type(store).__name__,
        gateway.primary_strategy,
        config.llm_model_name,
    )
    return Services(
        store=store,
        gateway=gateway,
        searcher=searcher,
        tools=tools,
        pipeline=pipeline,
        orchestrator=orchestrator,
    )
