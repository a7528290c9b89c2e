"""End-to-end flow: index documents, search them, and stream an answer.

Runs the real pipeline (extraction, chunking, SQLite chunk store, hybrid
search, chat service, streaming producer) with deterministic embedding
and LLM doubles.  The streamed answer is consumed by ``ChatStreamClient``
through an in-process ASGI transport.
"""

from __future__ import annotations

from pathlib import Path

import httpx
import pytest
import pytest_asyncio
from fastapi import FastAPI

from ragdesk.api.routes import router as api_router
from ragdesk.config.settings import Settings
from ragdesk.models.indexing import IndexingState
from ragdesk.pipeline.status_tracker import IndexingStatusTracker
from ragdesk.providers.cache.memory_cache import MemoryCacheProvider
from ragdesk.providers.chunk_store.sqlite_chunk_store import SQLiteChunkStore
from ragdesk.providers.extraction.text_extractor import (
    CompositeTextExtractor,
    PlainTextExtractor,
)
from ragdesk.providers.status.sqlite_status_store import SQLiteIndexingStatusStore
from ragdesk.providers.usage.sqlite_usage_recorder import SQLiteUsageRecorder
from ragdesk.services.chat_service import ChatService
from ragdesk.services.ingestion.chunker import TextChunker
from ragdesk.services.ingestion.embedding_generator import EmbeddingGenerator
from ragdesk.services.ingestion.index_writer import IndexWriter
from ragdesk.services.ingestion.indexing_service import IndexingService
from ragdesk.services.search_service import HybridSearchEngine
from ragdesk.services.usage_meter import UsageMeter
from ragdesk.streaming.client import ChatStreamClient
from ragdesk.streaming.producer import StreamProducer
from ragdesk.utils.concurrency import drain_background_tasks
from tests.conftest import (
    LONG_PARAGRAPH_A,
    LONG_PARAGRAPH_B,
    MockEmbeddingProvider,
    ScriptedLLMProvider,
)


@pytest_asyncio.fixture
async def stack(tmp_path: Path) -> dict:
    db_path = tmp_path / "ragdesk.db"
    chunk_store = SQLiteChunkStore(db_path=db_path)
    status_store = SQLiteIndexingStatusStore(db_path=db_path)
    usage_recorder = SQLiteUsageRecorder(db_path=db_path)
    await chunk_store.initialize()
    await status_store.initialize()
    await usage_recorder.initialize()

    embeddings = EmbeddingGenerator(MockEmbeddingProvider())
    indexing = IndexingService(
        extractor=CompositeTextExtractor([PlainTextExtractor()]),
        chunker=TextChunker(),
        embeddings=embeddings,
        writer=IndexWriter(chunk_store),
        tracker=IndexingStatusTracker(status_store),
    )
    search = HybridSearchEngine(store=chunk_store, embeddings=embeddings)
    llm = ScriptedLLMProvider()
    chat = ChatService(
        search=search,
        llm=llm,
        cache=MemoryCacheProvider(),
        meter=UsageMeter(usage_recorder),
    )
    return {
        "chunk_store": chunk_store,
        "usage_recorder": usage_recorder,
        "indexing": indexing,
        "search": search,
        "chat": chat,
        "llm": llm,
    }


class TestIndexThenSearch:
    @pytest.mark.asyncio
    async def test_indexed_paragraphs_are_searchable(
        self, stack: dict, handbook_text: str
    ) -> None:
        status = await stack["indexing"].index_document(
            "handbook", "org-1", handbook_text.encode(), "text/plain"
        )
        assert status.status is IndexingState.COMPLETED

        results = await stack["search"].search("remote work approval", "org-1")

        assert LONG_PARAGRAPH_B in [r.content for r in results]
        assert all(r.organization_id == "org-1" for r in results)
        scores = [r.score for r in results]
        assert scores == sorted(scores, reverse=True)

    @pytest.mark.asyncio
    async def test_organizations_never_see_each_other(
        self, stack: dict, handbook_text: str
    ) -> None:
        await stack["indexing"].index_document(
            "handbook", "org-1", handbook_text.encode(), "text/plain"
        )
        await stack["indexing"].index_document(
            "other", "org-2", f"Other company\n\n{LONG_PARAGRAPH_A}".encode(), "text/plain"
        )

        org1 = await stack["search"].search("refund receipts", "org-1")
        org2 = await stack["search"].search("refund receipts", "org-2")

        assert {r.document_id for r in org1} <= {"handbook"}
        assert {r.document_id for r in org2} == {"other"}

    @pytest.mark.asyncio
    async def test_reindex_does_not_duplicate_results(
        self, stack: dict, handbook_text: str
    ) -> None:
        for _ in range(2):
            await stack["indexing"].index_document(
                "handbook", "org-1", handbook_text.encode(), "text/plain"
            )

        results = await stack["search"].search("refund receipts", "org-1")

        contents = [r.content for r in results]
        assert len(contents) == len(set(contents))

    @pytest.mark.asyncio
    async def test_chat_meters_usage(self, stack: dict, handbook_text: str) -> None:
        await stack["indexing"].index_document(
            "handbook", "org-1", handbook_text.encode(), "text/plain"
        )

        response = await stack["chat"].generate_response("refund receipts?", "alice", "org-1")
        await drain_background_tasks()

        assert LONG_PARAGRAPH_A in [s.content for s in response.sources]
        tokens, cost = await stack["usage_recorder"].total_for_organization("org-1")
        assert tokens == 150
        assert cost == pytest.approx(0.0003)


class TestStreamedAnswer:
    @pytest.mark.asyncio
    async def test_client_receives_finalized_message(
        self, stack: dict, handbook_text: str
    ) -> None:
        await stack["indexing"].index_document(
            "handbook", "org-1", handbook_text.encode(), "text/plain"
        )
        app = FastAPI()
        app.include_router(api_router)
        app.state.settings = Settings(default_user_id="alice", default_organization_id="org-1")
        app.state.stream_producer = StreamProducer(stack["chat"])

        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://ragdesk") as http:
            client = ChatStreamClient(http)
            message = await client.ask("refund receipts?")

        assert message is not None
        assert message.content == "Refunds take thirty days."
        assert message.query == "refund receipts?"
        assert LONG_PARAGRAPH_A in [s.content for s in message.sources]
        assert client.consumer.is_streaming is False
        assert stack["llm"].closed is True
