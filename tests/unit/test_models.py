"""Unit tests for the pydantic domain models."""

from __future__ import annotations

import pytest
from pydantic import TypeAdapter, ValidationError

from ragdesk.models.chat import ChatResponse, Source, TokenUsage, UsageRecord
from ragdesk.models.indexing import IndexingState, IndexingStatus
from ragdesk.models.rag import Chunk, SearchQuery, SearchResult
from ragdesk.models.stream import DeltaEvent, DoneEvent, StreamEvent


class TestSearchQuery:
    @pytest.mark.parametrize(
        ("requested", "expected"),
        [(10, 10), (100, 100), (101, 100), (5000, 100), (0, 1), (-3, 1), (None, 10)],
    )
    def test_limit_is_clamped(self, requested, expected) -> None:
        query = SearchQuery(text="q", organization_id="org-1", limit=requested)
        assert query.limit == expected

    def test_negative_offset_rejected(self) -> None:
        with pytest.raises(ValidationError):
            SearchQuery(text="q", organization_id="org-1", offset=-1)

    def test_organization_required(self) -> None:
        with pytest.raises(ValidationError):
            SearchQuery(text="q", organization_id="")


class TestChunk:
    def test_requires_organization(self) -> None:
        with pytest.raises(ValidationError):
            Chunk(chunk_id="c", document_id="d", organization_id="", content="x")

    def test_is_frozen(self) -> None:
        chunk = Chunk(chunk_id="c", document_id="d", organization_id="org-1", content="x")
        with pytest.raises(ValidationError):
            chunk.content = "y"  # type: ignore[misc]


class TestSearchResult:
    def test_negative_score_rejected(self) -> None:
        with pytest.raises(ValidationError):
            SearchResult(chunk_id="c", document_id="d", content="x", score=-0.1)

    def test_score_may_exceed_one(self) -> None:
        assert SearchResult(chunk_id="c", document_id="d", content="x", score=1.7).score == 1.7


class TestIndexingStatus:
    def test_defaults(self) -> None:
        status = IndexingStatus(document_id="doc-1")
        assert status.status is IndexingState.PENDING
        assert status.progress == 0
        assert status.is_terminal is False

    def test_progress_bounds(self) -> None:
        with pytest.raises(ValidationError):
            IndexingStatus(document_id="doc-1", progress=101)

    def test_terminal_states(self) -> None:
        assert IndexingStatus(document_id="d", status=IndexingState.FAILED).is_terminal
        assert IndexingStatus(document_id="d", status=IndexingState.COMPLETED).is_terminal

    def test_json_uses_lowercase_state(self) -> None:
        payload = IndexingStatus(document_id="d", status=IndexingState.PROCESSING).model_dump(
            mode="json"
        )
        assert payload["status"] == "processing"


class TestChatModels:
    def test_chat_response_json_round_trip(self) -> None:
        response = ChatResponse(
            content="Refunds take 30 days.",
            sources=[Source(chunk_id="c1", document_id="doc-1", score=0.86)],
            usage=TokenUsage(prompt_tokens=120, completion_tokens=30, total_tokens=150),
        )
        assert ChatResponse.model_validate_json(response.model_dump_json()) == response

    def test_usage_record_rejects_negative_tokens(self) -> None:
        with pytest.raises(ValidationError):
            UsageRecord(user_id="u", organization_id="o", tokens_used=-1, cost=0.0)


class TestStreamEvent:
    def test_discriminated_union(self) -> None:
        adapter = TypeAdapter(StreamEvent)
        assert isinstance(adapter.validate_python({"kind": "delta", "text": "hi"}), DeltaEvent)
        assert isinstance(adapter.validate_python({"kind": "done"}), DoneEvent)

    def test_unknown_kind_rejected(self) -> None:
        with pytest.raises(ValidationError):
            TypeAdapter(StreamEvent).validate_python({"kind": "bogus"})
