"""Orchestrator for the document indexing pipeline.

Pipeline stages: **extract -> preprocess/chunk -> embed -> write**, with
the status tracker recording every transition::

    processing(0) -> processing(30, total_chunks) -> completed(100)
                                                  \\-> failed(0, error)

Chunks are built per paragraph: :meth:`TextChunker.preprocess` drops
noise paragraphs, then each surviving paragraph is sentence-packed with
:meth:`TextChunker.split_into_chunks`.  ``total_chunks`` is therefore the
exact number of chunk rows that will be written.

All collaborators are injected via the constructor, so extractors,
embedding providers and stores can be swapped without touching this class.
Indexing failures never roll back the document itself; the caller owns
the document record and only the indexing status reflects the failure.
"""

from __future__ import annotations

import asyncio
import time
from typing import TYPE_CHECKING

import structlog

from ragdesk.models.indexing import IndexingState, IndexingStatus
from ragdesk.services.ingestion.chunker import TextChunker
from ragdesk.utils.errors import IndexingError, RagDeskError

if TYPE_CHECKING:
    from ragdesk.interfaces.document_source import IDocumentSource
    from ragdesk.interfaces.text_extractor import ITextExtractor
    from ragdesk.pipeline.status_tracker import IndexingStatusTracker
    from ragdesk.services.ingestion.embedding_generator import EmbeddingGenerator
    from ragdesk.services.ingestion.index_writer import IndexWriter

logger = structlog.get_logger(logger_name=__name__)


class IndexingService:
    """Turns uploaded binaries into searchable, organization-scoped chunks."""

    def __init__(
        self,
        extractor: ITextExtractor,
        chunker: TextChunker,
        embeddings: EmbeddingGenerator,
        writer: IndexWriter,
        tracker: IndexingStatusTracker,
        document_source: IDocumentSource | None = None,
    ) -> None:
        self._extractor = extractor
        self._chunker = chunker
        self._embeddings = embeddings
        self._writer = writer
        self._tracker = tracker
        self._document_source = document_source

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def index_document(
        self,
        document_id: str,
        organization_id: str,
        data: bytes,
        content_type: str | None = None,
    ) -> IndexingStatus:
        """Index one document binary and return its final status.

        Raises
        ------
        IndexingError
            If any stage fails after indexing started; the status is
            ``failed`` and the original error is chained as ``__cause__``.
        """
        if not organization_id:
            raise IndexingError(message="organization_id is required to index a document")

        started = time.perf_counter()
        await self._tracker.start(document_id, organization_id)

        try:
            # PDF parsing is CPU-bound; keep it off the event loop.
            extraction = await asyncio.to_thread(self._extractor.extract, data, content_type)

            paragraphs = self._chunker.preprocess(extraction.text)
            contents = [
                chunk
                for paragraph in paragraphs
                for chunk in self._chunker.split_into_chunks(paragraph)
            ]
            await self._tracker.chunks_known(document_id, len(contents))

            # An empty chunk list still clears chunks left by a previous run.
            vectors = await self._embeddings.embed(contents)
            await self._writer.write(
                document_id,
                organization_id,
                contents,
                vectors,
                title=extraction.metadata.title,
                metadata={
                    "page_count": extraction.page_count,
                    "author": extraction.metadata.author,
                    "keywords": self._chunker.extract_keywords(extraction.text),
                    "language": self._chunker.detect_language(extraction.text),
                },
            )

            status = await self._tracker.complete(document_id)
        except Exception as exc:
            message = exc.message if isinstance(exc, RagDeskError) else str(exc)
            await self._tracker.fail(document_id, message or type(exc).__name__)
            logger.error(
                "indexing_failed",
                document_id=document_id,
                organization_id=organization_id,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            raise IndexingError(
                message=f"Indexing failed: {message}",
                provider_name=getattr(exc, "provider_name", None),
            ) from exc

        logger.info(
            "document_indexed",
            document_id=document_id,
            organization_id=organization_id,
            paragraphs=len(paragraphs),
            chunks=status.total_chunks,
            pages=extraction.page_count,
            elapsed_s=round(time.perf_counter() - started, 3),
        )
        return status

    async def get_indexing_status(self, document_id: str) -> IndexingStatus | None:
        """Return the latest status, or ``None`` if the document was never indexed."""
        return await self._tracker.get(document_id)

    async def batch_index_documents(
        self, document_ids: list[str], organization_id: str
    ) -> list[IndexingStatus]:
        """Index stored documents one after another.

        Each id is first queued as ``pending``.  A failure yields a
        ``failed`` entry for that id and processing moves on to the next.
        """
        if self._document_source is None:
            raise IndexingError(message="Batch indexing requires a document source")

        for document_id in document_ids:
            try:
                await self._tracker.queue(document_id, organization_id)
            except IndexingError as exc:
                logger.warning("batch_queue_skipped", document_id=document_id, error=str(exc))

        results: list[IndexingStatus] = []
        for document_id in document_ids:
            try:
                data, content_type = await self._document_source.fetch(
                    document_id, organization_id
                )
                results.append(
                    await self.index_document(document_id, organization_id, data, content_type)
                )
            except RagDeskError as exc:
                results.append(await self._failed_entry(document_id, organization_id, exc))

        logger.info(
            "batch_indexing_complete",
            organization_id=organization_id,
            total=len(document_ids),
            completed=sum(1 for r in results if r.status is IndexingState.COMPLETED),
            failed=sum(1 for r in results if r.status is IndexingState.FAILED),
        )
        return results

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _failed_entry(
        self, document_id: str, organization_id: str, exc: RagDeskError
    ) -> IndexingStatus:
        """Return the stored failed status, recording one if the run never started."""
        current = await self._tracker.get(document_id)
        owned = current is None or current.organization_id == organization_id
        if owned and current is not None and current.status is IndexingState.FAILED:
            return current
        if owned and (current is None or current.status is IndexingState.PENDING):
            return await self._tracker.fail(document_id, exc.message)
        # Another request or organization holds the record; report without touching it.
        return IndexingStatus(
            document_id=document_id,
            organization_id=organization_id,
            status=IndexingState.FAILED,
            error_message=exc.message,
        )
