"""Text extractor implementations (PDF via PyMuPDF, plain text, composite)."""

from ragdesk.providers.extraction.pdf_extractor import PDFTextExtractor
from ragdesk.providers.extraction.text_extractor import CompositeTextExtractor, PlainTextExtractor

__all__ = ["CompositeTextExtractor", "PDFTextExtractor", "PlainTextExtractor"]
