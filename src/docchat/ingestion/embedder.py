"""Embedding gateway — text → fixed-dimension vectors.

The primary strategy is a LangChain :class:`Embeddings` provider
(sentence-transformers through ``langchain_huggingface`` by default).
When the provider cannot be loaded or fails, the gateway switches to a
deterministic character-trigram hash embedding.  Hash vectors are
reproducible across runs but carry no semantics, so every batch reports
which strategy produced it and the store records that identifier next
to each vector.
"""

from __future__ import annotations

import hashlib
import logging
import math
import threading
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING

from docchat.config import settings
from docchat.errors import EmbeddingProviderError

if TYPE_CHECKING:
    from langchain_core.embeddings import Embeddings

logger = logging.getLogger(__name__)

HASH_STRATEGY_PREFIX = "hash-v1"


def get_embedding_function(model_name: str = settings.embedding_model) -> Embeddings:
    """Return the configured sentence-transformer embedding function."""
    from langchain_huggingface import HuggingFaceEmbeddings

    return HuggingFaceEmbeddings(model_name=model_name, encode_kwargs={"normalize_embeddings": True})


def hash_embedding(text: str, dim: int) -> list[float]:
    """Deterministic, L2-normalised character-trigram hash embedding.

    Each padded trigram is hashed with BLAKE2b; the digest picks a bucket
    and a sign.  Texts sharing character sequences end up with a positive
    cosine similarity, which keeps degraded retrieval usable.
    """
    vector = [0.0] * dim
    padded = f"  {text.lower()}  "
    for i in range(len(padded) - 2):
        digest = hashlib.blake2b(padded[i : i + 3].encode("utf-8"), digest_size=8).digest()
        value = int.from_bytes(digest, "big")
        bucket = value % dim
        vector[bucket] += 1.0 if (value >> 63) & 1 else -1.0

    norm = math.sqrt(sum(v * v for v in vector))
    if norm == 0.0:
        return vector
    return [v / norm for v in vector]


@dataclass(frozen=True)
class EmbeddingBatch:
    """Vectors for one ``embed`` call, all produced by the same strategy."""

    vectors: list[list[float]]
    strategy: str
    fallback: bool = False


class EmbeddingGateway:
    """Order-preserving, batching embedding front-end with a hash fallback.

    Parameters
    ----------
    embeddings_factory:
        Zero-argument callable returning the provider, called lazily on first
        use.  ``None`` disables the primary strategy.
    model_name:
        Identifier of the primary model, used in the strategy id.
    batch_size:
        Max texts per provider call.
    fallback_dim:
        Dimension of the hash fallback vectors.
    allow_fallback:
        When ``False`` provider failures raise :class:`EmbeddingProviderError`.
    retry_cooldown_seconds:
        After the factory fails, further loads are refused for this long;
        the next call after the cooldown tries the factory again.
    clock:
        Monotonic time source.
    """

    def __init__(
        self,
        embeddings_factory: Callable[[], Embeddings] | None = get_embedding_function,
        *,
        model_name: str = settings.embedding_model,
        batch_size: int = settings.embedding_batch_size,
        fallback_dim: int = settings.fallback_embedding_dim,
        allow_fallback: bool = settings.allow_embedding_fallback,
        retry_cooldown_seconds: float = settings.embedding_retry_cooldown_seconds,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._factory = embeddings_factory
        self._provider: Embeddings | None = None
        self._failed_at: float | None = None
        self._lock = threading.Lock()
        self.model_name = model_name
        self.batch_size = batch_size
        self.fallback_dim = fallback_dim
        self.allow_fallback = allow_fallback
        self.retry_cooldown_seconds = retry_cooldown_seconds
        self._clock = clock

    # -- strategy identifiers -------------------------------------------------

    @property
    def primary_strategy(self) -> str:
        return f"hf:{self.model_name}"

    @property
    def fallback_strategy(self) -> str:
        return f"{HASH_STRATEGY_PREFIX}:{self.fallback_dim}"

    # -- public API -----------------------------------------------------------

    def embed(self, texts: Sequence[str]) -> EmbeddingBatch:
        """Embed *texts*; ``result.vectors[i]`` belongs to ``texts[i]``.

        If any provider batch fails, every text of this call is re-embedded
        with the fallback so a single call never mixes strategies.
        """
        texts = list(texts)
        if not texts:
            return EmbeddingBatch(vectors=[], strategy=self.primary_strategy)

        try:
            provider = self._get_provider()
            vectors: list[list[float]] = []
            for start in range(0, len(texts), self.batch_size):
                batch = texts[start : start + self.batch_size]
                batch_vectors = provider.embed_documents(batch)
                if len(batch_vectors) != len(batch):
                    raise EmbeddingProviderError(
                        f"Provider returned {len(batch_vectors)} vectors for {len(batch)} texts"
                    )
                vectors.extend(list(v) for v in batch_vectors)
            return EmbeddingBatch(vectors=vectors, strategy=self.primary_strategy)
        except Exception as exc:
            if not self.allow_fallback:
                raise EmbeddingProviderError(f"Failed to generate embeddings: {exc}") from exc
            logger.warning(
                "Embedding provider %s unavailable (%s); using %s fallback for %d text(s). "
                "Retrieval quality is degraded for this batch.",
                self.primary_strategy,
                exc,
                self.fallback_strategy,
                len(texts),
            )
            return EmbeddingBatch(
                vectors=[hash_embedding(t, self.fallback_dim) for t in texts],
                strategy=self.fallback_strategy,
                fallback=True,
            )

    def embed_query(self, text: str, strategy: str) -> list[float]:
        """Embed a query with the exact *strategy* its target corpus used.

        Raises
        ------
        EmbeddingProviderError
            If *strategy* is unknown or the primary provider fails.
        """
        if strategy == self.fallback_strategy:
            return hash_embedding(text, self.fallback_dim)
        if strategy != self.primary_strategy:
            raise EmbeddingProviderError(
                f"Unknown embedding strategy {strategy!r}", stage="search"
            )
        try:
            return list(self._get_provider().embed_query(text))
        except EmbeddingProviderError:
            raise
        except Exception as exc:
            raise EmbeddingProviderError(
                f"Failed to embed query with {strategy}: {exc}", stage="search"
            ) from exc

    # -- internals ------------------------------------------------------------

    def _get_provider(self) -> Embeddings:
        if self._provider is not None:
            return self._provider
        with self._lock:
            if self._provider is None:
                if self._factory is None:
                    raise EmbeddingProviderError("No embedding provider configured")
                now = self._clock()
                if self._failed_at is not None and now - self._failed_at < self.retry_cooldown_seconds:
                    raise EmbeddingProviderError("Embedding provider failed to initialise")
                try:
                    logger.info("Loading embedding model %s", self.model_name)
                    self._provider = self._factory()
                except Exception:
                    self._failed_at = now
                    raise
                self._failed_at = None
        return self._provider
