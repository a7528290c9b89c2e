"""Unit tests for ChatService (single-shot + streaming) and UsageMeter."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from ragdesk.interfaces.usage_recorder import IUsageRecorder
from ragdesk.models.chat import TokenUsage
from ragdesk.models.stream import DeltaEvent, ErrorEvent, SourcesEvent
from ragdesk.providers.cache.memory_cache import MemoryCacheProvider
from ragdesk.services.chat_service import (
    ChatService,
    build_context,
    build_prompt,
    cache_key,
)
from ragdesk.services.search_service import HybridSearchEngine
from ragdesk.services.usage_meter import UsageMeter
from ragdesk.utils.concurrency import drain_background_tasks
from ragdesk.utils.errors import LexicalProviderError, LLMProviderError, UsageRecordingError
from tests.conftest import InMemoryUsageRecorder, ScriptedLLMProvider, make_result


def _search(results=None, error: Exception | None = None) -> MagicMock:
    search = MagicMock(spec=HybridSearchEngine)
    if error is not None:
        search.search = AsyncMock(side_effect=error)
    else:
        search.search = AsyncMock(
            return_value=results if results is not None else [make_result("c1", 0.86)]
        )
    return search


def _service(
    llm: ScriptedLLMProvider,
    recorder: IUsageRecorder,
    search: MagicMock | None = None,
) -> ChatService:
    return ChatService(
        search=search or _search(),
        llm=llm,
        cache=MemoryCacheProvider(),
        meter=UsageMeter(recorder),
    )


async def _collect(agen) -> list:
    return [event async for event in agen]


class TestPromptHelpers:
    def test_context_numbers_documents(self) -> None:
        context = build_context(
            [make_result("a", 1.0, content="Refunds take 30 days."), make_result("b", 0.5)]
        )
        assert context.startswith("[Document 1]\nTitle: Handbook\nContent: Refunds take 30 days.")
        assert "[Document 2]" in context

    def test_empty_context(self) -> None:
        assert build_context([]) == "No relevant documents were found."

    def test_prompt_contains_question_and_context(self) -> None:
        prompt = build_prompt("How long do refunds take?", "[Document 1]")
        assert "Question: How long do refunds take?" in prompt
        assert "[Document 1]" in prompt
        assert prompt.endswith("Answer:")

    def test_cache_key_is_scoped_by_organization(self) -> None:
        assert cache_key("org-1", "q") != cache_key("org-2", "q")
        assert cache_key("org-1", "q") == cache_key("org-1", "q")
        assert cache_key("org-1", "q").startswith("chat:org-1:")


class TestGenerateResponse:
    @pytest.mark.asyncio
    async def test_returns_answer_with_sources_and_usage(
        self, scripted_llm: ScriptedLLMProvider, usage_recorder: InMemoryUsageRecorder
    ) -> None:
        service = _service(scripted_llm, usage_recorder)

        response = await service.generate_response("refund policy?", "u1", "org-1")
        await drain_background_tasks()

        assert response.content == "Refunds take thirty days."
        assert [s.chunk_id for s in response.sources] == ["c1"]
        assert response.usage.total_tokens == 150
        assert len(usage_recorder.records) == 1
        record = usage_recorder.records[0]
        assert record.user_id == "u1"
        assert record.organization_id == "org-1"
        assert record.tokens_used == 150
        assert record.cost == pytest.approx(0.0003)

    @pytest.mark.asyncio
    async def test_search_is_scoped_to_caller_organization(
        self, scripted_llm: ScriptedLLMProvider, usage_recorder: InMemoryUsageRecorder
    ) -> None:
        search = _search()
        service = _service(scripted_llm, usage_recorder, search)

        await service.generate_response("refund policy?", "u1", "org-9")

        search.search.assert_awaited_once_with("refund policy?", "org-9", limit=5)

    @pytest.mark.asyncio
    async def test_second_identical_query_is_served_from_cache(
        self, scripted_llm: ScriptedLLMProvider, usage_recorder: InMemoryUsageRecorder
    ) -> None:
        service = _service(scripted_llm, usage_recorder)

        first = await service.generate_response("refund policy?", "u1", "org-1")
        second = await service.generate_response("refund policy?", "u1", "org-1")
        await drain_background_tasks()

        assert second == first
        assert len(scripted_llm.complete_calls) == 1
        assert len(usage_recorder.records) == 1

    @pytest.mark.asyncio
    async def test_cache_is_not_shared_across_organizations(
        self, scripted_llm: ScriptedLLMProvider, usage_recorder: InMemoryUsageRecorder
    ) -> None:
        service = _service(scripted_llm, usage_recorder)

        await service.generate_response("refund policy?", "u1", "org-1")
        await service.generate_response("refund policy?", "u2", "org-2")

        assert len(scripted_llm.complete_calls) == 2

    @pytest.mark.asyncio
    async def test_no_sources_still_answers(
        self, scripted_llm: ScriptedLLMProvider, usage_recorder: InMemoryUsageRecorder
    ) -> None:
        service = _service(scripted_llm, usage_recorder, _search(results=[]))

        response = await service.generate_response("anything?", "u1", "org-1")

        assert response.sources == []
        assert "No relevant documents were found." in scripted_llm.complete_calls[0]

    @pytest.mark.asyncio
    async def test_llm_failure_propagates_without_caching(
        self, usage_recorder: InMemoryUsageRecorder
    ) -> None:
        llm = MagicMock(spec=ScriptedLLMProvider)
        llm.get_provider_name.return_value = "broken"
        llm.complete = AsyncMock(side_effect=LLMProviderError(message="rate limited"))
        cache = MemoryCacheProvider()
        service = ChatService(
            search=_search(), llm=llm, cache=cache, meter=UsageMeter(usage_recorder)
        )

        with pytest.raises(LLMProviderError):
            await service.generate_response("refund policy?", "u1", "org-1")
        await drain_background_tasks()

        assert await cache.exists(cache_key("org-1", "refund policy?")) is False
        assert usage_recorder.records == []

    @pytest.mark.asyncio
    async def test_usage_failure_never_reaches_the_caller(
        self, scripted_llm: ScriptedLLMProvider
    ) -> None:
        recorder = MagicMock(spec=IUsageRecorder)
        recorder.record = AsyncMock(side_effect=UsageRecordingError(message="billing down"))
        service = _service(scripted_llm, recorder)

        response = await service.generate_response("refund policy?", "u1", "org-1")
        await drain_background_tasks()

        assert response.content == "Refunds take thirty days."
        recorder.record.assert_awaited_once()


class TestStreamResponse:
    @pytest.mark.asyncio
    async def test_sources_precede_deltas(
        self, scripted_llm: ScriptedLLMProvider, usage_recorder: InMemoryUsageRecorder
    ) -> None:
        service = _service(scripted_llm, usage_recorder)

        events = await _collect(service.stream_response("refund policy?", "u1", "org-1"))

        assert isinstance(events[0], SourcesEvent)
        assert [e.text for e in events[1:]] == ["Refunds ", "take ", "thirty days."]
        assert all(isinstance(e, DeltaEvent) for e in events[1:])
        assert scripted_llm.closed is True

    @pytest.mark.asyncio
    async def test_no_sources_event_without_results(
        self, scripted_llm: ScriptedLLMProvider, usage_recorder: InMemoryUsageRecorder
    ) -> None:
        service = _service(scripted_llm, usage_recorder, _search(results=[]))

        events = await _collect(service.stream_response("anything?", "u1", "org-1"))

        assert all(isinstance(e, DeltaEvent) for e in events)

    @pytest.mark.asyncio
    async def test_provider_failure_ends_with_one_error(
        self, usage_recorder: InMemoryUsageRecorder
    ) -> None:
        llm = ScriptedLLMProvider(fail_after=1)
        service = _service(llm, usage_recorder)

        events = await _collect(service.stream_response("refund policy?", "u1", "org-1"))

        assert [type(e) for e in events] == [SourcesEvent, DeltaEvent, ErrorEvent]
        assert events[-1].message == "model went away"
        assert llm.closed is True

    @pytest.mark.asyncio
    async def test_search_failure_yields_error_event(
        self, scripted_llm: ScriptedLLMProvider, usage_recorder: InMemoryUsageRecorder
    ) -> None:
        search = _search(error=LexicalProviderError(message="index offline"))
        service = _service(scripted_llm, usage_recorder, search)

        events = await _collect(service.stream_response("refund policy?", "u1", "org-1"))

        assert len(events) == 1
        assert isinstance(events[0], ErrorEvent)
        assert scripted_llm.stream_calls == 0

    @pytest.mark.asyncio
    async def test_early_close_closes_provider_stream(
        self, scripted_llm: ScriptedLLMProvider, usage_recorder: InMemoryUsageRecorder
    ) -> None:
        service = _service(scripted_llm, usage_recorder)
        stream = service.stream_response("refund policy?", "u1", "org-1")

        assert isinstance(await stream.__anext__(), SourcesEvent)
        assert isinstance(await stream.__anext__(), DeltaEvent)
        await stream.aclose()

        assert scripted_llm.yielded == 1
        assert scripted_llm.closed is True


class TestUsageMeter:
    def test_build_record_prices_tokens(self, usage_recorder: InMemoryUsageRecorder) -> None:
        meter = UsageMeter(usage_recorder, cost_per_token=0.001)
        record = meter.build_record(
            "u1", "org-1", TokenUsage(prompt_tokens=7, completion_tokens=3, total_tokens=10)
        )
        assert record.tokens_used == 10
        assert record.api_calls == 1
        assert record.cost == pytest.approx(0.01)

    @pytest.mark.asyncio
    async def test_record_runs_in_background(self, usage_recorder: InMemoryUsageRecorder) -> None:
        meter = UsageMeter(usage_recorder)
        task = meter.record("u1", "org-1", TokenUsage(total_tokens=5))
        await task
        assert usage_recorder.records[0].tokens_used == 5
