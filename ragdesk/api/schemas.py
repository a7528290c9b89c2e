"""Pydantic request/response schemas for the ragdesk API.

Domain models (``IndexingStatus``, ``SearchResult``, ``ChatResponse``) are
returned as-is; the schemas here cover request bodies and the envelopes
that have no domain counterpart.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from ragdesk.models.indexing import IndexingStatus
from ragdesk.models.rag import SearchResult


class ChatRequest(BaseModel):
    """A question to answer from the caller's indexed documents."""

    query: str = Field(..., min_length=1, max_length=1000)


class SearchResponseBody(BaseModel):
    """One page of hybrid search results."""

    results: list[SearchResult] = Field(default_factory=list)
    total: int = 0


class BatchIndexRequest(BaseModel):
    """Previously uploaded documents to (re)index in one call."""

    document_ids: list[str] = Field(..., min_length=1, max_length=100)


class BatchIndexResponse(BaseModel):
    results: list[IndexingStatus] = Field(default_factory=list)


class HealthResponse(BaseModel):
    """Application health check response."""

    status: str
    version: str
    providers: dict[str, Any]


class ErrorResponse(BaseModel):
    """Standard error response body."""

    error: str
    detail: str | None = None
