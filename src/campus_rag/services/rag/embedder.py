from __future__ import annotations

from collections.abc import Sequence
from functools import partial
import logging

from campus_rag.errors import DimensionMismatchError, EmbeddingError
from campus_rag.retry import RetryPolicy
from campus_rag.services.rag.embedding_client import EmbeddingClient

logger = logging.getLogger(__name__)


class Embedder:
    """Order-preserving, batched access to an embedding provider.

    Every provider batch runs through the retry policy. A batch that still
    fails, or that returns the wrong number of vectors, fails the whole call
    so chunks and vectors can never drift apart.
    """

    def __init__(
        self,
        client: EmbeddingClient,
        *,
        batch_size: int = 32,
        retry_policy: RetryPolicy | None = None,
    ) -> None:
        if batch_size <= 0:
            raise ValueError("batch_size must be > 0")
        self._client = client
        self._batch_size = batch_size
        self._retry_policy = retry_policy or RetryPolicy()

    @property
    def provider_id(self) -> str:
        return getattr(self._client, "provider_id", type(self._client).__name__)

    def embed(self, text: str) -> list[float]:
        return self.embed_batch([text])[0]

    def embed_batch(self, texts: Sequence[str]) -> list[list[float]]:
        if not texts:
            return []

        vectors: list[list[float]] = []
        for start in range(0, len(texts), self._batch_size):
            batch = list(texts[start : start + self._batch_size])
            batch_vectors = self._retry_policy.call(partial(self._client.embed_texts, batch))
            if len(batch_vectors) != len(batch):
                raise EmbeddingError(
                    f"Embedding provider returned {len(batch_vectors)} vectors for {len(batch)} texts"
                )
            vectors.extend(batch_vectors)

        dimension = len(vectors[0])
        if dimension == 0:
            raise EmbeddingError("Embedding provider returned an empty vector")
        for vector in vectors:
            if len(vector) != dimension:
                raise DimensionMismatchError(dimension, len(vector), context="embedding batch")

        logger.info(
            "[embedder:embed_batch] provider=%s texts=%d dim=%d",
            self.provider_id,
            len(texts),
            dimension,
        )
        return vectors
