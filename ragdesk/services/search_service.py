"""Hybrid lexical + semantic search over organization-scoped chunks.

Two retrieval branches run concurrently for every query:

- **Lexical** -- ranked full-text search in the chunk store.  When that
  function fails, or finds nothing, the engine falls back to keyword
  containment: each whitespace-separated keyword is searched on its own,
  hits are unioned and de-duplicated by chunk id, and every hit gets the
  flat fallback score.
- **Vector** -- the query is embedded and compared against stored chunk
  embeddings above a similarity threshold.

Both branches are always awaited.  A branch that raises contributes an
empty list, so one failing provider degrades the ranking instead of
failing the query.

Fusion is a fixed-weight linear combination keyed by chunk id::

    lexical only   ->  lexical_score * 0.6
    vector only    ->  vector_score  * 0.4
    both           ->  sum of the two weighted contributions

Results are sorted by fused score (ties keep first-seen order, lexical
hits first), then ``offset`` and ``limit`` are applied.
"""

from __future__ import annotations

import time
from dataclasses import dataclass

import structlog

from ragdesk.interfaces.chunk_store import IChunkStore
from ragdesk.models.rag import SearchQuery, SearchResult
from ragdesk.services.ingestion.embedding_generator import EmbeddingGenerator
from ragdesk.utils.concurrency import gather_settled
from ragdesk.utils.errors import LexicalProviderError

logger = structlog.get_logger(logger_name=__name__)


@dataclass(frozen=True)
class SearchWeights:
    """Tunable constants of the hybrid ranking."""

    lexical: float = 0.6
    vector: float = 0.4
    similarity_threshold: float = 0.3
    fallback_score: float = 0.6
    default_limit: int = 10
    max_limit: int = 100


class HybridSearchEngine:
    """Runs lexical and vector retrieval concurrently and fuses their scores."""

    def __init__(
        self,
        store: IChunkStore,
        embeddings: EmbeddingGenerator,
        weights: SearchWeights | None = None,
    ) -> None:
        self._store = store
        self._embeddings = embeddings
        self._weights = weights or SearchWeights()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def search(
        self,
        text: str,
        organization_id: str,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[SearchResult]:
        """Convenience wrapper building a :class:`SearchQuery`."""
        query = SearchQuery(
            text=text,
            organization_id=organization_id,
            limit=limit if limit is not None else self._weights.default_limit,
            offset=max(0, offset),
        )
        return await self.search_documents(query)

    async def search_documents(self, query: SearchQuery) -> list[SearchResult]:
        """Return fused, ranked results for *query*.

        An empty or whitespace-only query returns ``[]`` without touching
        any provider.
        """
        text = query.text.strip()
        if not text:
            return []

        limit = self.clamp_limit(query.limit)
        # Each branch fetches enough candidates to fill the requested page.
        branch_limit = limit + query.offset
        started = time.perf_counter()

        lexical, vector = await gather_settled(
            self._lexical_branch(text, query.organization_id, branch_limit),
            self._vector_branch(text, query.organization_id, branch_limit),
        )
        lexical_results = self._settle("lexical", lexical, query.organization_id)
        vector_results = self._settle("vector", vector, query.organization_id)

        fused = self.fuse(lexical_results, vector_results)
        page = fused[query.offset : query.offset + limit]

        logger.info(
            "hybrid_search_complete",
            organization_id=query.organization_id,
            lexical_count=len(lexical_results),
            vector_count=len(vector_results),
            fused_count=len(fused),
            returned=len(page),
            elapsed_ms=round((time.perf_counter() - started) * 1000, 1),
        )
        return page

    def clamp_limit(self, limit: int | None) -> int:
        if limit is None:
            return self._weights.default_limit
        return max(1, min(limit, self._weights.max_limit))

    def fuse(
        self,
        lexical_results: list[SearchResult],
        vector_results: list[SearchResult],
    ) -> list[SearchResult]:
        """Merge both branches by chunk id into one descending-score list."""
        scores: dict[str, float] = {}
        hits: dict[str, SearchResult] = {}

        for result in lexical_results:
            if result.chunk_id in scores:
                continue
            hits[result.chunk_id] = result
            scores[result.chunk_id] = result.score * self._weights.lexical

        for result in vector_results:
            contribution = result.score * self._weights.vector
            if result.chunk_id in scores:
                scores[result.chunk_id] += contribution
            else:
                hits[result.chunk_id] = result
                scores[result.chunk_id] = contribution

        # sorted() is stable, so equal scores keep first-seen order.
        ranked = sorted(hits, key=lambda chunk_id: scores[chunk_id], reverse=True)
        return [hits[cid].model_copy(update={"score": max(0.0, scores[cid])}) for cid in ranked]

    # ------------------------------------------------------------------
    # Branches
    # ------------------------------------------------------------------

    async def _lexical_branch(
        self, text: str, organization_id: str, limit: int
    ) -> list[SearchResult]:
        try:
            ranked = await self._store.ranked_search(text.lower(), organization_id, limit)
        except LexicalProviderError as exc:
            logger.warning("ranked_search_failed", error=str(exc), fallback="keyword")
            ranked = []

        if ranked:
            return ranked
        return await self._keyword_fallback(text, organization_id, limit)

    async def _keyword_fallback(
        self, text: str, organization_id: str, limit: int
    ) -> list[SearchResult]:
        seen: set[str] = set()
        hits: list[SearchResult] = []
        for keyword in text.split():
            for result in await self._store.keyword_search(keyword, organization_id, limit):
                if result.chunk_id in seen:
                    continue
                seen.add(result.chunk_id)
                hits.append(result.model_copy(update={"score": self._weights.fallback_score}))

        logger.debug("keyword_fallback", keywords=len(text.split()), hits=len(hits))
        return hits[:limit]

    async def _vector_branch(
        self, text: str, organization_id: str, limit: int
    ) -> list[SearchResult]:
        embedding = await self._embeddings.embed_query(text)
        return await self._store.vector_search(
            embedding,
            organization_id,
            threshold=self._weights.similarity_threshold,
            limit=limit,
        )

    @staticmethod
    def _settle(
        branch: str,
        outcome: list[SearchResult] | BaseException,
        organization_id: str,
    ) -> list[SearchResult]:
        if isinstance(outcome, BaseException):
            logger.warning(
                "search_branch_failed",
                branch=branch,
                error=str(outcome),
                error_type=type(outcome).__name__,
            )
            return []
        # Guard against a store that ignores the organization filter.
        scoped = [r for r in outcome if r.organization_id in ("", organization_id)]
        if len(scoped) != len(outcome):
            logger.error(
                "cross_organization_results_dropped",
                branch=branch,
                count=len(outcome) - len(scoped),
            )
        return scoped
