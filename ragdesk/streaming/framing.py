"""Wire framing for streamed answers.

Frames are Server-Sent-Events ``data:`` lines, each followed by a blank
line::

    data: {"sources": [...]}
    data: {"content": "partial text"}
    data: {"error": "message"}
    data: [DONE]

Every JSON payload carries exactly one of ``content``, ``sources`` or
``error``.  The terminal sentinel ``[DONE]`` is not JSON.
"""

from __future__ import annotations

import json

import structlog
from pydantic import ValidationError

from ragdesk.models.chat import Source
from ragdesk.models.stream import DeltaEvent, DoneEvent, ErrorEvent, SourcesEvent, StreamEvent

logger = structlog.get_logger(logger_name=__name__)

DATA_PREFIX = "data: "
DONE_SENTINEL = "[DONE]"
MEDIA_TYPE = "text/event-stream"


def _frame(payload: str) -> str:
    return f"{DATA_PREFIX}{payload}\n\n"


def encode_event(event: StreamEvent) -> str:
    """Serialise one event to its wire frame."""
    if isinstance(event, DeltaEvent):
        return _frame(json.dumps({"content": event.text}, ensure_ascii=False))
    if isinstance(event, SourcesEvent):
        sources = [s.model_dump(mode="json") for s in event.sources]
        return _frame(json.dumps({"sources": sources}, ensure_ascii=False))
    if isinstance(event, ErrorEvent):
        return _frame(json.dumps({"error": event.message}, ensure_ascii=False))
    if isinstance(event, DoneEvent):
        return _frame(DONE_SENTINEL)
    raise TypeError(f"Unknown stream event: {type(event).__name__}")


def parse_frame(line: str, session_id: str | None = None) -> StreamEvent | None:
    """Parse one received line into an event tagged with *session_id*.

    Blank lines, comments, non-``data:`` fields and malformed payloads
    return ``None``.
    """
    line = line.strip()
    if not line.startswith(DATA_PREFIX.rstrip()):
        return None
    payload = line[len(DATA_PREFIX.rstrip()) :].strip()
    if not payload:
        return None
    if payload == DONE_SENTINEL:
        return DoneEvent(session_id=session_id)

    try:
        data = json.loads(payload)
    except json.JSONDecodeError:
        logger.debug("stream_frame_malformed", payload=payload[:80])
        return None
    if not isinstance(data, dict):
        return None

    if "error" in data:
        return ErrorEvent(message=str(data["error"]), session_id=session_id)
    if "sources" in data:
        try:
            sources = [Source.model_validate(s) for s in data["sources"] or []]
        except (ValidationError, TypeError):
            logger.debug("stream_sources_malformed")
            return None
        return SourcesEvent(sources=sources, session_id=session_id)
    if "content" in data and isinstance(data["content"], str):
        return DeltaEvent(text=data["content"], session_id=session_id)
    return None
