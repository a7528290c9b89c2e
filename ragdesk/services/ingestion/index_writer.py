"""Builds chunk rows from texts + vectors and persists them org-scoped."""

from __future__ import annotations

import uuid
from typing import Any

import structlog

from ragdesk.interfaces.chunk_store import IChunkStore
from ragdesk.models.rag import Chunk

logger = structlog.get_logger(logger_name=__name__)


class IndexWriter:
    """Persists one document's chunks to an :class:`IChunkStore`.

    Parameters
    ----------
    store:
        Target chunk store.
    replace_existing:
        When ``True`` a document's previous chunks are swapped for the new
        ones in one store transaction, so re-indexing never leaves stale or
        duplicate rows behind and a failed write keeps the old chunks.
    """

    def __init__(self, store: IChunkStore, replace_existing: bool = True) -> None:
        self._store = store
        self._replace_existing = replace_existing

    async def write(
        self,
        document_id: str,
        organization_id: str,
        contents: list[str],
        embeddings: list[list[float]],
        title: str = "",
        metadata: dict[str, Any] | None = None,
    ) -> list[Chunk]:
        """Write ``contents[i]`` with ``embeddings[i]`` as paragraph *i*.

        Returns the persisted chunks.
        """
        if not organization_id:
            raise ValueError("organization_id is required for every chunk")
        if len(contents) != len(embeddings):
            raise ValueError(
                f"{len(contents)} contents but {len(embeddings)} embeddings for {document_id}"
            )

        chunks = [
            Chunk(
                chunk_id=uuid.uuid4().hex,
                document_id=document_id,
                organization_id=organization_id,
                content=content,
                embedding=embedding,
                paragraph_index=index,
                title=title,
                metadata=dict(metadata or {}),
            )
            for index, (content, embedding) in enumerate(zip(contents, embeddings))
        ]
        if self._replace_existing:
            await self._store.replace_document_chunks(document_id, organization_id, chunks)
        else:
            await self._store.add_chunks(chunks)
        logger.debug(
            "index_written",
            document_id=document_id,
            chunks=len(chunks),
            replaced=self._replace_existing,
        )
        return chunks
