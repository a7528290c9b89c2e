"""Custom exception hierarchy for ragdesk.

All application exceptions inherit from :class:`RagDeskError`, which
carries an optional ``provider_name`` so error handlers can identify which
external service (e.g. "openai", "pymupdf", "sqlite") caused the failure.

The hierarchy is organized by pipeline stage:

    RagDeskError  (base -- catch-all for any ragdesk error)
    +-- ExtractionError          (binary -> text)
    +-- EmbeddingProviderError   (text -> vectors)
    +-- DimensionMismatchError   (vector math on unequal lengths)
    +-- LexicalProviderError     (ranked full-text search)
    +-- ChunkStoreError          (chunk persistence / vector lookup)
    +-- IndexingError            (indexing pipeline orchestration)
    |   +-- DocumentOwnershipError  (document id held by another organization)
    +-- DocumentNotFoundError    (document binary missing from the source)
    +-- LLMProviderError         (generation call failed)
    +-- UsageRecordingError      (metering write failed)
    +-- ConfigurationError       (startup / missing config)

Search degrades on EmbeddingProviderError and LexicalProviderError, while
indexing aborts on them; see the services for the exact policy.
"""


class RagDeskError(Exception):
    """Base exception for all ragdesk errors.

    Every subclass carries a human-readable ``message`` and an optional
    ``provider_name`` identifying which external service triggered the
    error.  ``__str__`` prefixes the provider name in brackets, e.g.
    ``[openai] Embedding call failed``.
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Indexing errors
# ---------------------------------------------------------------------------

class ExtractionError(RagDeskError):
    """Raised when a binary document cannot be parsed into text."""

    def __init__(
        self,
        message: str = "Text extraction failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class EmbeddingProviderError(RagDeskError):
    """Raised when the embedding provider fails or returns a malformed batch."""

    def __init__(
        self,
        message: str = "Embedding generation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class DimensionMismatchError(RagDeskError):
    """Raised when two vectors of different length are compared."""

    def __init__(
        self,
        message: str = "Vectors must have the same dimension",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class IndexingError(RagDeskError):
    """Raised when indexing a document fails at any stage after it started.

    The originating error is always chained via ``raise ... from``.
    """

    def __init__(
        self,
        message: str = "Document indexing failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class DocumentOwnershipError(IndexingError):
    """Raised when a document id is already tracked under another organization."""

    def __init__(
        self,
        message: str = "Document belongs to another organization",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class DocumentNotFoundError(RagDeskError):
    """Raised when a document binary cannot be fetched from the document source."""

    def __init__(
        self,
        message: str = "Document not found",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Retrieval errors
# ---------------------------------------------------------------------------

class LexicalProviderError(RagDeskError):
    """Raised when the ranked full-text search function fails.

    The hybrid search engine catches this and falls back to keyword
    containment search.
    """

    def __init__(
        self,
        message: str = "Ranked lexical search failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ChunkStoreError(RagDeskError):
    """Raised when reading or writing chunk rows fails."""

    def __init__(
        self,
        message: str = "Chunk store operation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Generation / metering errors
# ---------------------------------------------------------------------------

class LLMProviderError(RagDeskError):
    """Raised when an LLM API call fails or returns an unusable response."""

    def __init__(
        self,
        message: str = "LLM API call failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class UsageRecordingError(RagDeskError):
    """Raised by usage recorders when a metering write fails."""

    def __init__(
        self,
        message: str = "Usage recording failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ConfigurationError(RagDeskError):
    """Raised when configuration is invalid or missing at startup."""

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
