"""Unit tests for IndexingService: the extract -> chunk -> embed -> write pipeline."""

from __future__ import annotations

import threading
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio

from ragdesk.interfaces.embedding_provider import IEmbeddingProvider
from ragdesk.interfaces.text_extractor import ITextExtractor
from ragdesk.models.extraction import ExtractionResult
from ragdesk.models.indexing import IndexingState
from ragdesk.pipeline.status_tracker import IndexingStatusTracker
from ragdesk.providers.chunk_store.sqlite_chunk_store import SQLiteChunkStore
from ragdesk.providers.documents.filesystem_source import FilesystemDocumentSource
from ragdesk.providers.extraction.text_extractor import (
    CompositeTextExtractor,
    PlainTextExtractor,
)
from ragdesk.services.ingestion.chunker import TextChunker
from ragdesk.services.ingestion.embedding_generator import EmbeddingGenerator
from ragdesk.services.ingestion.index_writer import IndexWriter
from ragdesk.services.ingestion.indexing_service import IndexingService
from ragdesk.utils.errors import (
    ChunkStoreError,
    DocumentNotFoundError,
    DocumentOwnershipError,
    EmbeddingProviderError,
    ExtractionError,
    IndexingError,
)
from tests.conftest import (
    LONG_PARAGRAPH_A,
    LONG_PARAGRAPH_B,
    InMemoryStatusStore,
    InterruptedWriteChunkStore,
    MockEmbeddingProvider,
)


@pytest_asyncio.fixture
async def chunk_store(tmp_path: Path) -> SQLiteChunkStore:
    store = SQLiteChunkStore(db_path=tmp_path / "chunks.db")
    await store.initialize()
    return store


@pytest.fixture()
def document_source(tmp_path: Path) -> FilesystemDocumentSource:
    return FilesystemDocumentSource(tmp_path / "documents")


def _service(
    chunk_store: SQLiteChunkStore,
    status_store: InMemoryStatusStore,
    embedding_provider: IEmbeddingProvider,
    document_source: FilesystemDocumentSource | None = None,
    extractor: ITextExtractor | None = None,
) -> IndexingService:
    return IndexingService(
        extractor=extractor or CompositeTextExtractor([PlainTextExtractor()]),
        chunker=TextChunker(),
        embeddings=EmbeddingGenerator(embedding_provider),
        writer=IndexWriter(chunk_store),
        tracker=IndexingStatusTracker(status_store),
        document_source=document_source,
    )


def _failing_provider() -> MagicMock:
    provider = MagicMock(spec=IEmbeddingProvider)
    provider.get_provider_name.return_value = "openai_embedding"
    provider.embed = AsyncMock(
        side_effect=EmbeddingProviderError(
            message="quota exceeded", provider_name="openai_embedding"
        )
    )
    return provider


class _ThreadRecordingExtractor(PlainTextExtractor):
    def __init__(self) -> None:
        self.threads: list[int] = []

    def extract(self, data: bytes, content_type: str | None = None) -> ExtractionResult:
        self.threads.append(threading.get_ident())
        return super().extract(data, content_type)


class TestIndexDocument:
    @pytest.mark.asyncio
    async def test_indexes_paragraphs_as_chunks(
        self,
        chunk_store: SQLiteChunkStore,
        status_store: InMemoryStatusStore,
        mock_embedding_provider: MockEmbeddingProvider,
        handbook_text: str,
    ) -> None:
        service = _service(chunk_store, status_store, mock_embedding_provider)

        status = await service.index_document(
            "doc-1", "org-1", handbook_text.encode(), "text/plain"
        )

        assert status.status is IndexingState.COMPLETED
        assert status.progress == 100
        assert status.total_chunks == 2
        assert status.processed_chunks == 2
        assert mock_embedding_provider.calls == [[LONG_PARAGRAPH_A, LONG_PARAGRAPH_B]]

        chunks = await chunk_store.get_chunks("doc-1", "org-1")
        assert [c.content for c in chunks] == [LONG_PARAGRAPH_A, LONG_PARAGRAPH_B]
        assert all(c.organization_id == "org-1" for c in chunks)
        assert chunks[0].title == "Employee Handbook"
        assert chunks[0].metadata["language"] == "en"

    @pytest.mark.asyncio
    async def test_status_passes_through_chunked_stage(
        self,
        chunk_store: SQLiteChunkStore,
        status_store: InMemoryStatusStore,
        mock_embedding_provider: MockEmbeddingProvider,
        handbook_text: str,
    ) -> None:
        service = _service(chunk_store, status_store, mock_embedding_provider)
        await service.index_document("doc-1", "org-1", handbook_text.encode(), "text/plain")

        assert [(s.status, s.progress, s.total_chunks) for s in status_store.history] == [
            (IndexingState.PROCESSING, 0, 0),
            (IndexingState.PROCESSING, 30, 2),
            (IndexingState.COMPLETED, 100, 2),
        ]

    @pytest.mark.asyncio
    async def test_short_paragraphs_only_completes_with_zero_chunks(
        self,
        chunk_store: SQLiteChunkStore,
        status_store: InMemoryStatusStore,
        mock_embedding_provider: MockEmbeddingProvider,
    ) -> None:
        text = "Page 1\n\nThis paragraph is exactly forty chars.\n\nFooter text here"
        service = _service(chunk_store, status_store, mock_embedding_provider)

        status = await service.index_document("doc-1", "org-1", text.encode(), "text/plain")

        assert status.status is IndexingState.COMPLETED
        assert status.total_chunks == 0
        assert mock_embedding_provider.calls == []
        assert await chunk_store.count_chunks("org-1") == 0

    @pytest.mark.asyncio
    async def test_reindex_replaces_previous_chunks(
        self,
        chunk_store: SQLiteChunkStore,
        status_store: InMemoryStatusStore,
        mock_embedding_provider: MockEmbeddingProvider,
        handbook_text: str,
    ) -> None:
        service = _service(chunk_store, status_store, mock_embedding_provider)
        await service.index_document("doc-1", "org-1", handbook_text.encode(), "text/plain")
        await service.index_document("doc-1", "org-1", handbook_text.encode(), "text/plain")

        assert await chunk_store.count_chunks("org-1", document_id="doc-1") == 2

    @pytest.mark.asyncio
    async def test_reindex_with_no_chunks_clears_old_rows(
        self,
        chunk_store: SQLiteChunkStore,
        status_store: InMemoryStatusStore,
        mock_embedding_provider: MockEmbeddingProvider,
        handbook_text: str,
    ) -> None:
        service = _service(chunk_store, status_store, mock_embedding_provider)
        await service.index_document("doc-1", "org-1", handbook_text.encode(), "text/plain")
        await service.index_document("doc-1", "org-1", b"Short note.", "text/plain")

        assert await chunk_store.count_chunks("org-1", document_id="doc-1") == 0

    @pytest.mark.asyncio
    async def test_embedding_failure_marks_failed(
        self,
        chunk_store: SQLiteChunkStore,
        status_store: InMemoryStatusStore,
        handbook_text: str,
    ) -> None:
        service = _service(chunk_store, status_store, _failing_provider())

        with pytest.raises(IndexingError) as exc_info:
            await service.index_document("doc-1", "org-1", handbook_text.encode(), "text/plain")

        assert isinstance(exc_info.value.__cause__, EmbeddingProviderError)
        assert exc_info.value.provider_name == "openai_embedding"

        stored = status_store.records["doc-1"]
        assert stored.status is IndexingState.FAILED
        assert stored.progress == 0
        assert stored.error_message == "quota exceeded"
        assert await chunk_store.count_chunks("org-1") == 0

    @pytest.mark.asyncio
    async def test_extraction_failure_marks_failed(
        self,
        chunk_store: SQLiteChunkStore,
        status_store: InMemoryStatusStore,
        mock_embedding_provider: MockEmbeddingProvider,
    ) -> None:
        service = _service(chunk_store, status_store, mock_embedding_provider)

        with pytest.raises(IndexingError) as exc_info:
            await service.index_document("doc-1", "org-1", b"", "text/plain")

        assert isinstance(exc_info.value.__cause__, ExtractionError)
        assert status_store.records["doc-1"].status is IndexingState.FAILED

    @pytest.mark.asyncio
    async def test_missing_organization_is_rejected_before_tracking(
        self,
        chunk_store: SQLiteChunkStore,
        status_store: InMemoryStatusStore,
        mock_embedding_provider: MockEmbeddingProvider,
        handbook_text: str,
    ) -> None:
        service = _service(chunk_store, status_store, mock_embedding_provider)

        with pytest.raises(IndexingError):
            await service.index_document("doc-1", "", handbook_text.encode(), "text/plain")
        assert status_store.history == []

    @pytest.mark.asyncio
    async def test_get_indexing_status(
        self,
        chunk_store: SQLiteChunkStore,
        status_store: InMemoryStatusStore,
        mock_embedding_provider: MockEmbeddingProvider,
        handbook_text: str,
    ) -> None:
        service = _service(chunk_store, status_store, mock_embedding_provider)
        assert await service.get_indexing_status("doc-1") is None

        await service.index_document("doc-1", "org-1", handbook_text.encode(), "text/plain")
        status = await service.get_indexing_status("doc-1")
        assert status is not None
        assert status.status is IndexingState.COMPLETED

    @pytest.mark.asyncio
    async def test_extraction_runs_in_worker_thread(
        self,
        chunk_store: SQLiteChunkStore,
        status_store: InMemoryStatusStore,
        mock_embedding_provider: MockEmbeddingProvider,
        handbook_text: str,
    ) -> None:
        extractor = _ThreadRecordingExtractor()
        service = _service(
            chunk_store, status_store, mock_embedding_provider, extractor=extractor
        )

        await service.index_document("doc-1", "org-1", handbook_text.encode(), "text/plain")

        assert len(extractor.threads) == 1
        assert extractor.threads[0] != threading.get_ident()

    @pytest.mark.asyncio
    async def test_failed_reindex_keeps_previous_chunks(
        self,
        tmp_path: Path,
        status_store: InMemoryStatusStore,
        mock_embedding_provider: MockEmbeddingProvider,
        handbook_text: str,
    ) -> None:
        store = InterruptedWriteChunkStore(db_path=tmp_path / "interrupted.db")
        await store.initialize()
        service = _service(store, status_store, mock_embedding_provider)
        await service.index_document("doc-1", "org-1", handbook_text.encode(), "text/plain")
        store.interrupt = True

        with pytest.raises(IndexingError) as exc_info:
            await service.index_document("doc-1", "org-1", handbook_text.encode(), "text/plain")

        assert isinstance(exc_info.value.__cause__, ChunkStoreError)
        assert status_store.records["doc-1"].status is IndexingState.FAILED
        chunks = await store.get_chunks("doc-1", "org-1")
        assert [c.content for c in chunks] == [LONG_PARAGRAPH_A, LONG_PARAGRAPH_B]

    @pytest.mark.asyncio
    async def test_other_organization_cannot_take_over_document(
        self,
        chunk_store: SQLiteChunkStore,
        status_store: InMemoryStatusStore,
        mock_embedding_provider: MockEmbeddingProvider,
        handbook_text: str,
    ) -> None:
        service = _service(chunk_store, status_store, mock_embedding_provider)
        await service.index_document("doc-1", "org-1", handbook_text.encode(), "text/plain")

        with pytest.raises(DocumentOwnershipError):
            await service.index_document("doc-1", "org-2", b"Hijack", "text/plain")

        stored = status_store.records["doc-1"]
        assert stored.organization_id == "org-1"
        assert stored.status is IndexingState.COMPLETED
        assert await chunk_store.count_chunks("org-1", document_id="doc-1") == 2
        assert await chunk_store.count_chunks("org-2") == 0


class TestBatchIndex:
    @pytest.mark.asyncio
    async def test_document_of_another_organization_is_left_alone(
        self,
        chunk_store: SQLiteChunkStore,
        status_store: InMemoryStatusStore,
        mock_embedding_provider: MockEmbeddingProvider,
        document_source: FilesystemDocumentSource,
        handbook_text: str,
    ) -> None:
        service = _service(
            chunk_store, status_store, mock_embedding_provider, document_source
        )
        await service.index_document("doc-a", "org-1", handbook_text.encode(), "text/plain")
        await document_source.store("doc-a", "org-2", handbook_text.encode(), "text/plain")

        results = await service.batch_index_documents(["doc-a"], "org-2")

        assert results[0].organization_id == "org-2"
        assert results[0].status is IndexingState.FAILED
        stored = status_store.records["doc-a"]
        assert stored.organization_id == "org-1"
        assert stored.status is IndexingState.COMPLETED

    @pytest.mark.asyncio
    async def test_missing_document_does_not_stop_the_batch(
        self,
        chunk_store: SQLiteChunkStore,
        status_store: InMemoryStatusStore,
        mock_embedding_provider: MockEmbeddingProvider,
        document_source: FilesystemDocumentSource,
        handbook_text: str,
    ) -> None:
        await document_source.store("doc-a", "org-1", handbook_text.encode(), "text/plain")
        await document_source.store("doc-c", "org-1", handbook_text.encode(), "text/plain")
        service = _service(
            chunk_store, status_store, mock_embedding_provider, document_source
        )

        results = await service.batch_index_documents(["doc-a", "doc-b", "doc-c"], "org-1")

        assert [r.document_id for r in results] == ["doc-a", "doc-b", "doc-c"]
        assert [r.status for r in results] == [
            IndexingState.COMPLETED,
            IndexingState.FAILED,
            IndexingState.COMPLETED,
        ]
        assert "doc-b" in (results[1].error_message or "")
        assert status_store.records["doc-b"].status is IndexingState.FAILED

    @pytest.mark.asyncio
    async def test_failed_indexing_is_reported_per_document(
        self,
        chunk_store: SQLiteChunkStore,
        status_store: InMemoryStatusStore,
        document_source: FilesystemDocumentSource,
        handbook_text: str,
    ) -> None:
        await document_source.store("doc-a", "org-1", handbook_text.encode(), "text/plain")
        service = _service(chunk_store, status_store, _failing_provider(), document_source)

        results = await service.batch_index_documents(["doc-a"], "org-1")

        assert results[0].status is IndexingState.FAILED
        assert results[0].error_message == "quota exceeded"

    @pytest.mark.asyncio
    async def test_requires_document_source(
        self,
        chunk_store: SQLiteChunkStore,
        status_store: InMemoryStatusStore,
        mock_embedding_provider: MockEmbeddingProvider,
    ) -> None:
        service = _service(chunk_store, status_store, mock_embedding_provider)
        with pytest.raises(IndexingError):
            await service.batch_index_documents(["doc-a"], "org-1")


class TestFilesystemDocumentSource:
    @pytest.mark.asyncio
    async def test_store_and_fetch(self, document_source: FilesystemDocumentSource) -> None:
        await document_source.store("doc-1", "org-1", b"hello", "text/plain")
        assert await document_source.fetch("doc-1", "org-1") == (b"hello", "text/plain")

    @pytest.mark.asyncio
    async def test_fetch_is_scoped_by_organization(
        self, document_source: FilesystemDocumentSource
    ) -> None:
        await document_source.store("doc-1", "org-1", b"hello")
        with pytest.raises(DocumentNotFoundError):
            await document_source.fetch("doc-1", "org-2")

    @pytest.mark.asyncio
    async def test_rejects_path_traversal(self, document_source: FilesystemDocumentSource) -> None:
        with pytest.raises(DocumentNotFoundError):
            await document_source.fetch("../secret", "org-1")
