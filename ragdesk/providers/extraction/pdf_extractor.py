"""PDF text extractor built on PyMuPDF (fitz).

Reads a PDF straight from memory, extracts text page-by-page, and copies
title/author/subject/keywords out of the document info dictionary.
Pages without a text layer contribute nothing; a scanned PDF therefore
extracts to an empty string rather than failing.
"""

from __future__ import annotations

import fitz  # PyMuPDF -- the "fitz" import name is a PyMuPDF convention
import structlog

from ragdesk.interfaces.text_extractor import ITextExtractor
from ragdesk.models.extraction import DocumentMetadata, ExtractionResult
from ragdesk.utils.errors import ExtractionError

logger = structlog.get_logger(logger_name=__name__)

_PDF_MAGIC = b"%PDF"


class PDFTextExtractor(ITextExtractor):
    """Extracts text and metadata from PDF bytes."""

    def extract(self, data: bytes, content_type: str | None = None) -> ExtractionResult:
        if not data:
            raise ExtractionError(message="Empty PDF payload", provider_name=self.get_provider_name())

        try:
            doc = fitz.open(stream=data, filetype="pdf")
        except (RuntimeError, ValueError) as exc:
            # fitz.FileDataError subclasses RuntimeError
            raise ExtractionError(
                message=f"Unreadable PDF: {exc}", provider_name=self.get_provider_name()
            ) from exc

        try:
            pages: list[str] = []
            for page in doc:
                text = page.get_text("text").strip()
                if text:
                    pages.append(text)
            page_count = doc.page_count
            metadata = self._metadata(doc.metadata or {})
        except RuntimeError as exc:
            raise ExtractionError(
                message=f"PDF text extraction failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        finally:
            doc.close()

        if not pages:
            logger.warning("pdf_no_text_extracted", page_count=page_count)

        logger.info("pdf_extracted", page_count=page_count, text_pages=len(pages))
        return ExtractionResult(text="\n\n".join(pages), page_count=page_count, metadata=metadata)

    def supports(self, data: bytes, content_type: str | None = None) -> bool:
        if content_type and content_type.split(";")[0].strip().lower() == "application/pdf":
            return True
        return data[:4] == _PDF_MAGIC

    def get_provider_name(self) -> str:
        return "pymupdf"

    @staticmethod
    def _metadata(raw: dict) -> DocumentMetadata:
        keywords = [k.strip() for k in (raw.get("keywords") or "").split(",") if k.strip()]
        return DocumentMetadata(
            title=(raw.get("title") or "").strip(),
            author=(raw.get("author") or "").strip(),
            subject=(raw.get("subject") or "").strip(),
            keywords=keywords,
        )
