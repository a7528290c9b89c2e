"""Server side of the streaming protocol.

:class:`StreamProducer` turns the chat service's tagged event stream into
wire frames for one :class:`StreamSession`:

- sources and deltas are framed and forwarded as they arrive, with no
  buffering;
- exactly one terminal frame ends the session: ``[DONE]`` after the
  upstream stream is exhausted, or an ``error`` frame when it fails.
  Both go through :meth:`StreamSession.mark_terminal`, so a second
  terminal trigger emits nothing;
- when the client disconnects the frame generator is cancelled or
  closed; the session becomes ``aborted``, no terminal frame is written,
  and the upstream event stream (and with it the provider's HTTP stream)
  is closed.
"""

from __future__ import annotations

import asyncio
from typing import AsyncIterator

import anyio
import structlog

from ragdesk.models.stream import (
    DeltaEvent,
    DoneEvent,
    ErrorEvent,
    SessionState,
    SourcesEvent,
)
from ragdesk.services.chat_service import ChatService
from ragdesk.streaming.framing import encode_event
from ragdesk.streaming.session import StreamSession

logger = structlog.get_logger(logger_name=__name__)


class StreamProducer:
    """Frames chat events for the HTTP layer and tracks live sessions."""

    def __init__(self, chat: ChatService) -> None:
        self._chat = chat
        self._sessions: dict[str, StreamSession] = {}

    @property
    def active_sessions(self) -> int:
        return len(self._sessions)

    def open_session(self, query: str) -> StreamSession:
        """Create a session; it is tracked only while :meth:`frames` is iterated."""
        return StreamSession(query)

    async def frames(
        self,
        query: str,
        user_id: str,
        organization_id: str,
        session: StreamSession | None = None,
    ) -> AsyncIterator[str]:
        """Yield wire frames for one query until exactly one terminal frame."""
        session = session or self.open_session(query)
        session.begin()
        log = logger.bind(session_id=session.session_id, organization_id=organization_id)
        log.info("stream_session_started")

        events = self._chat.stream_response(query, user_id, organization_id)
        self._sessions[session.session_id] = session
        try:
            async for event in events:
                if isinstance(event, ErrorEvent):
                    if session.mark_terminal(SessionState.ERRORED, event.message):
                        yield encode_event(event)
                    return
                if isinstance(event, SourcesEvent):
                    if not session.set_sources(event.sources):
                        return
                elif isinstance(event, DeltaEvent):
                    if not session.append(event.text):
                        return
                yield encode_event(event)

            if session.mark_terminal(SessionState.COMPLETED):
                yield encode_event(DoneEvent())
        except (GeneratorExit, asyncio.CancelledError):
            session.mark_terminal(SessionState.ABORTED)
            log.info("stream_session_aborted", delivered_chars=len(session.content))
            raise
        except Exception as exc:
            log.error("stream_session_failed", error=str(exc), error_type=type(exc).__name__)
            if session.mark_terminal(SessionState.ERRORED, str(exc)):
                yield encode_event(ErrorEvent(message="Answer generation failed"))
        finally:
            # Closing must finish even while the surrounding task is being cancelled.
            with anyio.CancelScope(shield=True):
                await events.aclose()
            self._sessions.pop(session.session_id, None)
            log.info("stream_session_closed", state=session.state.value)
