"""Indexing status models.

One :class:`IndexingStatus` record exists per document and is overwritten
(upserted) at every pipeline stage; it is not an append log.  The state
machine it reflects is owned by
``ragdesk/pipeline/status_tracker.py``::

    PENDING -> PROCESSING(0) -> PROCESSING(30, total_chunks known)
            -> COMPLETED(100) | FAILED(progress 0, error_message set)
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class IndexingState(str, Enum):  # noqa: UP042
    """Lifecycle states of a document in the indexing pipeline."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)  # noqa: UP017


class IndexingStatus(BaseModel):
    """Latest known indexing state of one document.

    Transitions produce new instances via ``model_copy(update={...})``.
    """

    model_config = ConfigDict(frozen=True)

    document_id: str
    organization_id: str = ""
    status: IndexingState = IndexingState.PENDING
    progress: int = Field(default=0, ge=0, le=100, description="Percent complete.")
    total_chunks: int = Field(default=0, ge=0)
    processed_chunks: int = Field(default=0, ge=0)
    error_message: str | None = None
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @property
    def is_terminal(self) -> bool:
        return self.status in (IndexingState.COMPLETED, IndexingState.FAILED)
