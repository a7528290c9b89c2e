"""Streaming event and session-state models.

A streamed answer is an ordered channel of tagged events::

    SourcesEvent?  DeltaEvent*  (DoneEvent | ErrorEvent)

Exactly one terminal event (``DoneEvent`` or ``ErrorEvent``) ends a session.
Every event can carry the ``session_id`` it belongs to so the consumer can
discard stale deliveries from an earlier, cancelled session.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from ragdesk.models.chat import Source


class SessionState(str, Enum):  # noqa: UP042
    """Lifecycle of one query-to-answer streaming exchange."""

    IDLE = "idle"
    STREAMING = "streaming"
    COMPLETED = "completed"
    ABORTED = "aborted"
    ERRORED = "errored"


class DeltaEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["delta"] = "delta"
    text: str
    session_id: str | None = None


class SourcesEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["sources"] = "sources"
    sources: list[Source] = Field(default_factory=list)
    session_id: str | None = None


class ErrorEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["error"] = "error"
    message: str
    session_id: str | None = None


class DoneEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["done"] = "done"
    session_id: str | None = None


StreamEvent = Annotated[
    Union[DeltaEvent, SourcesEvent, ErrorEvent, DoneEvent],
    Field(discriminator="kind"),
]


class FinalizedMessage(BaseModel):
    """The frozen answer produced when a session completes."""

    model_config = ConfigDict(frozen=True)

    session_id: str
    query: str
    content: str
    sources: list[Source] = Field(default_factory=list)
