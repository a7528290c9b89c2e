"""Grounded answer synthesis, single-shot and streaming.

Both modes share one retrieval + prompt path:

1. Hybrid search for the top sources within the caller's organization.
2. Build the grounding context from numbered, titled excerpts.
3. Wrap the context and the question in a single instruction prompt.

:meth:`ChatService.generate_response` then makes one non-streaming LLM
call, caches the full answer for a short TTL keyed by organization and
query hash, and meters token usage in the background.

:meth:`ChatService.stream_response` is an async generator of tagged
events: one ``SourcesEvent`` (only when sources were found) strictly
before the first ``DeltaEvent``, then every provider delta in emission
order.  A provider failure yields a single ``ErrorEvent`` and ends the
generator; normal completion is the generator running out.  Closing the
generator early closes the upstream provider stream with it.
"""

from __future__ import annotations

import hashlib
from typing import AsyncIterator

import structlog

from ragdesk.interfaces.cache_provider import ICacheProvider
from ragdesk.interfaces.llm_provider import ILLMProvider
from ragdesk.models.chat import ChatResponse, Source
from ragdesk.models.rag import SearchResult
from ragdesk.models.stream import DeltaEvent, ErrorEvent, SourcesEvent, StreamEvent
from ragdesk.services.search_service import HybridSearchEngine
from ragdesk.services.usage_meter import UsageMeter
from ragdesk.utils.errors import RagDeskError

logger = structlog.get_logger(logger_name=__name__)

_SYSTEM_PROMPT = (
    "You are an assistant that answers questions using the reference documents "
    "provided. Base your answer on the document contents, be accurate and helpful, "
    "and say so when the documents do not contain the answer."
)

_NO_CONTEXT = "No relevant documents were found."

_PROMPT_TEMPLATE = """\
Answer the question using the reference documents below.

Reference documents:
{context}

Question: {query}

Answer:"""


def build_context(results: list[SearchResult]) -> str:
    """Format search results as numbered ``[Document N]`` excerpts."""
    if not results:
        return _NO_CONTEXT
    return "\n".join(
        f"[Document {index}]\nTitle: {result.title}\nContent: {result.content}\n"
        for index, result in enumerate(results, start=1)
    )


def build_prompt(query: str, context: str) -> str:
    return _PROMPT_TEMPLATE.format(context=context, query=query)


def cache_key(organization_id: str, query: str) -> str:
    digest = hashlib.sha256(query.encode("utf-8")).hexdigest()[:16]
    return f"chat:{organization_id}:{digest}"


def to_sources(results: list[SearchResult]) -> list[Source]:
    return [
        Source(
            chunk_id=r.chunk_id,
            document_id=r.document_id,
            title=r.title,
            content=r.content,
            score=r.score,
        )
        for r in results
    ]


class ChatService:
    """Answers questions from an organization's indexed documents."""

    def __init__(
        self,
        search: HybridSearchEngine,
        llm: ILLMProvider,
        cache: ICacheProvider,
        meter: UsageMeter,
        source_limit: int = 5,
        cache_ttl: int = 300,
        temperature: float = 0.7,
        max_tokens: int = 1000,
    ) -> None:
        self._search = search
        self._llm = llm
        self._cache = cache
        self._meter = meter
        self._source_limit = source_limit
        self._cache_ttl = cache_ttl
        self._temperature = temperature
        self._max_tokens = max_tokens

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def generate_response(
        self, query: str, user_id: str, organization_id: str
    ) -> ChatResponse:
        """Return a complete grounded answer, served from cache when possible.

        Raises
        ------
        ragdesk.utils.errors.LLMProviderError
            If the generation call fails.  Nothing is cached or metered.
        """
        key = cache_key(organization_id, query)
        cached = await self._cache.get(key)
        if cached is not None:
            logger.info("chat_cache_hit", organization_id=organization_id)
            return ChatResponse.model_validate_json(cached)

        results = await self._search.search(query, organization_id, limit=self._source_limit)
        prompt = build_prompt(query, build_context(results))

        completion = await self._llm.complete(
            system_prompt=_SYSTEM_PROMPT,
            user_prompt=prompt,
            temperature=self._temperature,
            max_tokens=self._max_tokens,
        )
        response = ChatResponse(
            content=completion.content,
            sources=to_sources(results),
            usage=completion.usage,
        )

        await self._cache.set(key, response.model_dump_json(), ttl=self._cache_ttl)
        self._meter.record(user_id, organization_id, completion.usage)

        logger.info(
            "chat_response_generated",
            organization_id=organization_id,
            sources=len(results),
            total_tokens=completion.usage.total_tokens,
            provider=self._llm.get_provider_name(),
        )
        return response

    async def stream_response(
        self, query: str, user_id: str, organization_id: str
    ) -> AsyncIterator[StreamEvent]:
        """Yield sources, then deltas; a failure ends the stream with one error event."""
        try:
            results = await self._search.search(
                query, organization_id, limit=self._source_limit
            )
        except RagDeskError as exc:
            logger.error("chat_stream_search_failed", error=str(exc))
            yield ErrorEvent(message=exc.message)
            return

        if results:
            yield SourcesEvent(sources=to_sources(results))

        prompt = build_prompt(query, build_context(results))
        deltas = self._llm.stream(
            system_prompt=_SYSTEM_PROMPT,
            user_prompt=prompt,
            temperature=self._temperature,
            max_tokens=self._max_tokens,
        )
        count = 0
        try:
            async for text in deltas:
                count += 1
                yield DeltaEvent(text=text)
        except RagDeskError as exc:
            logger.error(
                "chat_stream_failed",
                organization_id=organization_id,
                deltas=count,
                error=str(exc),
            )
            yield ErrorEvent(message=exc.message)
            return
        finally:
            # Runs on exhaustion, failure and early aclose() alike.
            await deltas.aclose()

        logger.info(
            "chat_stream_complete",
            organization_id=organization_id,
            user_id=user_id,
            sources=len(results),
            deltas=count,
        )
