"""Abstract base class for the document binary storage collaborator.

Document metadata CRUD and binary storage live outside this service.
Batch indexing only needs to fetch a document's bytes by id.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class IDocumentSource(ABC):
    """Contract for loading stored document binaries."""

    @abstractmethod
    async def fetch(self, document_id: str, organization_id: str) -> tuple[bytes, str | None]:
        """Return ``(data, content_type)`` for a stored document.

        Raises
        ------
        ragdesk.utils.errors.DocumentNotFoundError
            If no binary is stored for the document within the organization.
        """

    @abstractmethod
    async def store(
        self, document_id: str, organization_id: str, data: bytes, content_type: str | None = None
    ) -> None:
        """Store a document binary so later batch indexing can fetch it."""
