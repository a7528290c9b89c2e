"""Plain-text and Markdown extractor, plus the dispatching composite."""

from __future__ import annotations

import structlog

from ragdesk.interfaces.text_extractor import ITextExtractor
from ragdesk.models.extraction import DocumentMetadata, ExtractionResult
from ragdesk.utils.errors import ExtractionError

logger = structlog.get_logger(logger_name=__name__)

_TEXT_TYPES = ("text/", "application/json", "application/xml", "application/x-yaml")


class PlainTextExtractor(ITextExtractor):
    """Decodes UTF-8 text documents.

    The first non-empty line (with Markdown ``#`` markers stripped) becomes
    the title when it is short enough to plausibly be one.
    """

    def extract(self, data: bytes, content_type: str | None = None) -> ExtractionResult:
        if not data:
            raise ExtractionError(message="Empty document", provider_name=self.get_provider_name())
        try:
            text = data.decode("utf-8-sig")
        except UnicodeDecodeError as exc:
            raise ExtractionError(
                message=f"Document is not valid UTF-8 text: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        if "\x00" in text:
            raise ExtractionError(
                message="Binary content is not a supported text document",
                provider_name=self.get_provider_name(),
            )

        title = ""
        for line in text.splitlines():
            stripped = line.strip().lstrip("#").strip()
            if stripped:
                if len(stripped) <= 120:
                    title = stripped
                break
        return ExtractionResult(text=text, page_count=1, metadata=DocumentMetadata(title=title))

    def supports(self, data: bytes, content_type: str | None = None) -> bool:
        if content_type:
            return content_type.split(";")[0].strip().lower().startswith(_TEXT_TYPES)
        return b"\x00" not in data[:1024]

    def get_provider_name(self) -> str:
        return "plain_text"


class CompositeTextExtractor(ITextExtractor):
    """Tries each extractor in order and uses the first that supports the input."""

    def __init__(self, extractors: list[ITextExtractor]) -> None:
        self._extractors = list(extractors)

    def extract(self, data: bytes, content_type: str | None = None) -> ExtractionResult:
        for extractor in self._extractors:
            if extractor.supports(data, content_type):
                logger.debug(
                    "extractor_selected",
                    extractor=extractor.get_provider_name(),
                    content_type=content_type,
                )
                return extractor.extract(data, content_type)
        raise ExtractionError(
            message=f"Unsupported document type: {content_type or 'unknown'}",
            provider_name=self.get_provider_name(),
        )

    def supports(self, data: bytes, content_type: str | None = None) -> bool:
        return any(e.supports(data, content_type) for e in self._extractors)

    def get_provider_name(self) -> str:
        return "composite"
