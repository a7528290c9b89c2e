"""Retrieval data models: stored chunks, search queries and ranked results.

A :class:`Chunk` is the retrieval unit: one bounded piece of a document's
text plus its embedding, owned by exactly one organization.  Chunks are
written once by the indexing pipeline and never mutated; re-indexing a
document replaces its chunk rows wholesale.

The hybrid search engine (``ragdesk/services/search_service.py``) accepts a
:class:`SearchQuery` and returns :class:`SearchResult` objects ordered by
descending fused score.  Scores are weighted sums of per-branch scores and
are *not* probabilities; they may exceed 1.0.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


# ---------------------------------------------------------------------------
# Chunk -- the fundamental unit of the searchable index.
# ---------------------------------------------------------------------------
class Chunk(BaseModel):
    """A piece of document text with its embedding, scoped to one organization."""

    model_config = ConfigDict(frozen=True)

    chunk_id: str = Field(description="Unique identifier (UUID hex) for this chunk.")
    document_id: str = Field(description="Identifier of the parent document.")
    organization_id: str = Field(min_length=1, description="Owning organization; never empty.")
    content: str = Field(description="The chunk's text content.")
    embedding: list[float] = Field(
        default_factory=list, description="Fixed-dimension embedding vector."
    )
    paragraph_index: int = Field(default=0, ge=0, description="Position of the chunk in its document.")
    title: str = Field(default="", description="Title of the parent document, if known.")
    metadata: dict[str, Any] = Field(default_factory=dict, description="Free-form chunk metadata.")
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(tz=timezone.utc),  # noqa: UP017
        description="When the chunk row was written (UTC).",
    )


# ---------------------------------------------------------------------------
# SearchQuery -- input to the hybrid search engine.
# ---------------------------------------------------------------------------
class SearchQuery(BaseModel):
    """A search request scoped to one organization.

    ``limit`` is clamped rather than rejected: values above the server
    maximum become the maximum, values below 1 become 1.
    """

    model_config = ConfigDict(frozen=True)

    text: str = Field(default="", description="Free-text query.")
    organization_id: str = Field(min_length=1, description="Organization the caller belongs to.")
    limit: int = Field(default=10, description="Maximum number of results to return.")
    offset: int = Field(default=0, ge=0, description="Number of fused results to skip.")

    @field_validator("limit", mode="before")
    @classmethod
    def _clamp_limit(cls, value: Any) -> int:
        if value is None:
            return 10
        return max(1, min(int(value), 100))


# ---------------------------------------------------------------------------
# SearchResult -- one ranked hit.
# ---------------------------------------------------------------------------
class SearchResult(BaseModel):
    """A ranked chunk returned to the caller.

    The lexical and vector branches produce these with their raw score;
    fusion produces new instances carrying the weighted score.
    """

    model_config = ConfigDict(frozen=True)

    chunk_id: str
    document_id: str
    organization_id: str = ""
    title: str = ""
    content: str
    score: float = Field(default=0.0, ge=0.0, description="Fused (or raw branch) score.")
    metadata: dict[str, Any] = Field(default_factory=dict)
