"""Abstract base class for indexing-status persistence.

One record per document, overwritten at every pipeline stage.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from ragdesk.models.indexing import IndexingStatus


class IIndexingStatusStore(ABC):
    """Contract for upserting and reading per-document indexing status."""

    @abstractmethod
    async def upsert(self, status: IndexingStatus) -> None:
        """Insert or replace the record for ``status.document_id``.

        ``created_at`` of an existing record is preserved; every other
        field, including ``updated_at``, is overwritten.
        """

    @abstractmethod
    async def get(self, document_id: str) -> IndexingStatus | None:
        """Return the latest record for *document_id*, or ``None`` if absent."""
