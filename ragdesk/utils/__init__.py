"""Utility modules for ragdesk.

- **errors** -- exception hierarchy rooted at RagDeskError; each stage
  raises its own subclass so callers can degrade or abort precisely.
- **concurrency** -- settled gathering for concurrent retrieval branches
  and fire-and-forget scheduling for background metering.
- **logging** -- structlog setup with a dual renderer: coloured console
  output in development, structured JSON in production.
"""

from ragdesk.utils.concurrency import drain_background_tasks, fire_and_forget, gather_settled
from ragdesk.utils.errors import (
    ChunkStoreError,
    ConfigurationError,
    DimensionMismatchError,
    DocumentNotFoundError,
    EmbeddingProviderError,
    ExtractionError,
    IndexingError,
    LexicalProviderError,
    LLMProviderError,
    RagDeskError,
    UsageRecordingError,
)
from ragdesk.utils.logging import configure_logging, get_logger

__all__ = [
    "ChunkStoreError",
    "ConfigurationError",
    "DimensionMismatchError",
    "DocumentNotFoundError",
    "EmbeddingProviderError",
    "ExtractionError",
    "IndexingError",
    "LLMProviderError",
    "LexicalProviderError",
    "RagDeskError",
    "UsageRecordingError",
    "configure_logging",
    "drain_background_tasks",
    "fire_and_forget",
    "gather_settled",
    "get_logger",
]
