"""Abstract base class for binary-to-text extractors."""

from __future__ import annotations

from abc import ABC, abstractmethod

from ragdesk.models.extraction import ExtractionResult


# Concrete implementations: PDFTextExtractor, PlainTextExtractor, CompositeTextExtractor
# Located in: ragdesk/providers/extraction/
class ITextExtractor(ABC):
    """Contract for turning a raw uploaded document into plain text."""

    @abstractmethod
    def extract(self, data: bytes, content_type: str | None = None) -> ExtractionResult:
        """Extract text, page count and metadata from *data*.

        Parameters
        ----------
        data:
            Raw document bytes.
        content_type:
            Optional MIME type hint (e.g. ``"application/pdf"``).

        Returns
        -------
        ExtractionResult
            Extracted text with page count and document metadata.

        Raises
        ------
        ragdesk.utils.errors.ExtractionError
            If the input is empty, corrupt or in an unsupported format.
        """

    @abstractmethod
    def supports(self, data: bytes, content_type: str | None = None) -> bool:
        """Return ``True`` if this extractor can handle the given input."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier, e.g. ``"pymupdf"``."""
