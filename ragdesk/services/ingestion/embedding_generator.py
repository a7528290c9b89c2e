"""Batched, order-preserving embedding generation and cosine similarity."""

from __future__ import annotations

from typing import Sequence

import numpy as np
import structlog

from ragdesk.interfaces.embedding_provider import IEmbeddingProvider
from ragdesk.utils.errors import DimensionMismatchError, EmbeddingProviderError

logger = structlog.get_logger(logger_name=__name__)

DEFAULT_BATCH_SIZE = 100


class EmbeddingGenerator:
    """Embeds ordered text sequences through an :class:`IEmbeddingProvider`.

    Batches are sent sequentially and concatenated in input order.  Any
    provider failure aborts the whole call: callers never receive a
    partial result with silently missing vectors.
    """

    def __init__(self, provider: IEmbeddingProvider, batch_size: int = DEFAULT_BATCH_SIZE) -> None:
        if batch_size < 1:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        self._provider = provider
        self._batch_size = batch_size

    @property
    def provider(self) -> IEmbeddingProvider:
        return self._provider

    async def embed(self, texts: Sequence[str]) -> list[list[float]]:
        """Return one vector per input text, in input order.

        Raises
        ------
        EmbeddingProviderError
            If any batch fails or returns the wrong number of vectors.
        """
        texts = list(texts)
        if not texts:
            return []

        vectors: list[list[float]] = []
        for start in range(0, len(texts), self._batch_size):
            batch = texts[start : start + self._batch_size]
            try:
                batch_vectors = await self._provider.embed(batch)
            except EmbeddingProviderError:
                raise
            except Exception as exc:
                raise EmbeddingProviderError(
                    message=f"Embedding batch at offset {start} failed: {exc}",
                    provider_name=self._provider.get_provider_name(),
                ) from exc

            if len(batch_vectors) != len(batch):
                raise EmbeddingProviderError(
                    message=(
                        f"Provider returned {len(batch_vectors)} vectors "
                        f"for a batch of {len(batch)} texts"
                    ),
                    provider_name=self._provider.get_provider_name(),
                )
            vectors.extend(batch_vectors)

        logger.info(
            "embeddings_generated",
            count=len(vectors),
            batches=(len(texts) + self._batch_size - 1) // self._batch_size,
            provider=self._provider.get_provider_name(),
        )
        return vectors

    async def embed_query(self, text: str) -> list[float]:
        """Embed a single query string."""
        vectors = await self.embed([text])
        return vectors[0]


def cosine_similarity(v1: Sequence[float], v2: Sequence[float]) -> float:
    """Return ``dot(v1, v2) / (|v1| * |v2|)``.

    Raises :class:`DimensionMismatchError` when the vectors differ in
    length.  A zero-magnitude vector has similarity ``0.0`` with anything.
    """
    if len(v1) != len(v2):
        raise DimensionMismatchError(
            message=f"Cannot compare vectors of length {len(v1)} and {len(v2)}"
        )
    a = np.asarray(v1, dtype=np.float64)
    b = np.asarray(v2, dtype=np.float64)
    denom = float(np.linalg.norm(a) * np.linalg.norm(b))
    if denom == 0.0:
        return 0.0
    return float(np.dot(a, b) / denom)
