"""Abstract base class for the organization-partitioned chunk store.

The chunk store holds every indexed :class:`~ragdesk.models.rag.Chunk`
and answers the three retrieval primitives the hybrid search engine
combines: ranked full-text search, keyword containment search, and
embedding similarity search.

Every method takes an ``organization_id`` and implementations MUST filter
on it.  A query issued under one organization never sees another
organization's chunks, for any retrieval primitive.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from ragdesk.models.rag import Chunk, SearchResult


# Concrete implementations: SQLiteChunkStore (FTS5 + numpy cosine)
# Located in: ragdesk/providers/chunk_store/
class IChunkStore(ABC):
    """Contract for chunk persistence and org-scoped retrieval."""

    @abstractmethod
    async def add_chunks(self, chunks: list[Chunk]) -> int:
        """Persist *chunks* and return the number written.

        Raises
        ------
        ragdesk.utils.errors.ChunkStoreError
            If the write fails; no partial batch is left behind.
        """

    @abstractmethod
    async def delete_by_document(self, document_id: str, organization_id: str) -> int:
        """Delete every chunk of one document within one organization.

        Returns
        -------
        int
            Number of chunk rows removed.
        """

    @abstractmethod
    async def replace_document_chunks(
        self, document_id: str, organization_id: str, chunks: list[Chunk]
    ) -> int:
        """Atomically replace one document's chunks with *chunks*.

        The delete and the insert either both take effect or neither does;
        a failed write leaves the previous chunks searchable.

        Raises
        ------
        ragdesk.utils.errors.ChunkStoreError
            If the replacement fails.
        """

    @abstractmethod
    async def ranked_search(
        self, query: str, organization_id: str, limit: int
    ) -> list[SearchResult]:
        """Ranked term-frequency search, best match first.

        Scores are non-negative and larger means more relevant.

        Raises
        ------
        ragdesk.utils.errors.LexicalProviderError
            If the ranked search function fails (e.g. malformed query
            syntax); callers fall back to :meth:`keyword_search`.
        """

    @abstractmethod
    async def keyword_search(
        self, keyword: str, organization_id: str, limit: int
    ) -> list[SearchResult]:
        """Case-insensitive containment search for a single keyword.

        Returned results carry a score of ``0.0``; the caller assigns the
        fallback score.
        """

    @abstractmethod
    async def vector_search(
        self,
        embedding: list[float],
        organization_id: str,
        threshold: float,
        limit: int,
    ) -> list[SearchResult]:
        """Cosine-similarity search over stored embeddings.

        Only chunks with similarity strictly greater than *threshold* are
        returned, highest first, scored with their raw similarity.
        """

    @abstractmethod
    async def count_chunks(self, organization_id: str, document_id: str | None = None) -> int:
        """Return the number of stored chunks for an organization (or one document)."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier, e.g. ``"sqlite"``."""
