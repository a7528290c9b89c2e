"""ragdesk domain models -- re-exports all public model classes.

    - rag.py        -- chunks, search queries and ranked results
    - extraction.py -- text extraction output
    - indexing.py   -- per-document indexing status
    - chat.py       -- sources, token usage, answers and usage records
    - stream.py     -- tagged streaming events and session state
"""

from __future__ import annotations

from ragdesk.models.chat import (
    ChatResponse,
    LLMCompletion,
    Source,
    TokenUsage,
    UsageRecord,
)
from ragdesk.models.extraction import DocumentMetadata, ExtractionResult
from ragdesk.models.indexing import IndexingState, IndexingStatus
from ragdesk.models.rag import Chunk, SearchQuery, SearchResult
from ragdesk.models.stream import (
    DeltaEvent,
    DoneEvent,
    ErrorEvent,
    FinalizedMessage,
    SessionState,
    SourcesEvent,
    StreamEvent,
)

__all__ = [
    "ChatResponse",
    "Chunk",
    "DeltaEvent",
    "DocumentMetadata",
    "DoneEvent",
    "ErrorEvent",
    "ExtractionResult",
    "FinalizedMessage",
    "IndexingState",
    "IndexingStatus",
    "LLMCompletion",
    "SearchQuery",
    "SearchResult",
    "SessionState",
    "Source",
    "SourcesEvent",
    "StreamEvent",
    "TokenUsage",
    "UsageRecord",
]
