"""Client side of the streaming protocol.

:class:`StreamConsumer` owns at most one active :class:`StreamSession`:

- :meth:`begin` opens a session with a fresh id.  While one is still
  streaming, new queries are rejected (``None``), not queued.
- :meth:`handle` applies one received event.  Events tagged with any
  other session id are dropped silently, so late deliveries from a
  cancelled session never leak into the next answer.
- A ``done`` event freezes the buffer and latest sources into a
  :class:`FinalizedMessage`, hands it to listeners, and clears the
  session.  The terminal guard makes duplicate ``done`` events no-ops.
- :meth:`cancel` resets everything synchronously, without waiting for
  the producer to acknowledge.
"""

from __future__ import annotations

import threading
from collections.abc import Callable

import structlog

from ragdesk.models.chat import Source
from ragdesk.models.stream import (
    DeltaEvent,
    DoneEvent,
    ErrorEvent,
    FinalizedMessage,
    SessionState,
    SourcesEvent,
    StreamEvent,
)
from ragdesk.streaming.session import StreamSession

logger = structlog.get_logger(logger_name=__name__)


class StreamConsumer:
    """Accumulates one streamed answer at a time."""

    def __init__(self) -> None:
        self._session: StreamSession | None = None
        self._last_state = SessionState.IDLE
        self._last_error: str | None = None
        self._messages: list[FinalizedMessage] = []
        self._message_listeners: list[Callable[[FinalizedMessage], None]] = []
        self._error_listeners: list[Callable[[str, str], None]] = []
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Observable state
    # ------------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        with self._lock:
            return self._session.state if self._session else self._last_state

    @property
    def active_session_id(self) -> str | None:
        with self._lock:
            return self._session.session_id if self._session else None

    @property
    def is_streaming(self) -> bool:
        return self.state is SessionState.STREAMING

    @property
    def content(self) -> str:
        """Text accumulated so far for the active session."""
        with self._lock:
            return self._session.content if self._session else ""

    @property
    def sources(self) -> list[Source]:
        with self._lock:
            return self._session.sources if self._session else []

    @property
    def last_error(self) -> str | None:
        return self._last_error

    @property
    def messages(self) -> list[FinalizedMessage]:
        """Every finalized message, oldest first."""
        return list(self._messages)

    def on_message(self, callback: Callable[[FinalizedMessage], None]) -> None:
        self._message_listeners.append(callback)

    def on_error(self, callback: Callable[[str, str], None]) -> None:
        """Register ``callback(session_id, message)`` for errored sessions."""
        self._error_listeners.append(callback)

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------

    def begin(self, query: str) -> str | None:
        """Open a new session; returns ``None`` while another is still streaming."""
        with self._lock:
            if self._session is not None and self._session.state is SessionState.STREAMING:
                logger.info("stream_request_ignored", active_session=self._session.session_id)
                return None
            session = StreamSession(query)
            session.begin()
            self._session = session
            self._last_error = None
            logger.debug("stream_session_opened", session_id=session.session_id)
            return session.session_id

    def handle(self, event: StreamEvent) -> bool:
        """Apply *event*; returns ``True`` when it belonged to the active session."""
        finalized: FinalizedMessage | None = None
        errored: tuple[str, str] | None = None

        with self._lock:
            session = self._session
            if session is None or event.session_id != session.session_id:
                logger.debug(
                    "stale_stream_event_dropped",
                    kind=event.kind,
                    event_session=event.session_id,
                )
                return False

            if isinstance(event, DeltaEvent):
                return session.append(event.text)
            if isinstance(event, SourcesEvent):
                return session.set_sources(event.sources)
            if isinstance(event, ErrorEvent):
                if not session.mark_terminal(SessionState.ERRORED, event.message):
                    return False
                self._close(session)
                errored = (session.session_id, event.message)
            elif isinstance(event, DoneEvent):
                if not session.mark_terminal(SessionState.COMPLETED):
                    return False
                finalized = FinalizedMessage(
                    session_id=session.session_id,
                    query=session.query,
                    content=session.content,
                    sources=session.sources,
                )
                self._messages.append(finalized)
                self._close(session)

        # Listeners run outside the lock so they may start the next query.
        if finalized is not None:
            self._notify(self._message_listeners, finalized)
        if errored is not None:
            self._notify(self._error_listeners, *errored)
        return True

    def cancel(self) -> None:
        """Abort the active session and reset local state immediately."""
        with self._lock:
            session = self._session
            if session is None:
                return
            session.mark_terminal(SessionState.ABORTED)
            logger.info("stream_session_cancelled", session_id=session.session_id)
            self._close(session)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _close(self, session: StreamSession) -> None:
        self._last_state = session.state
        self._last_error = session.error
        session.reset()
        self._session = None

    @staticmethod
    def _notify(listeners: list[Callable], *args) -> None:
        for callback in list(listeners):
            try:
                callback(*args)
            except Exception as exc:
                logger.warning(
                    "stream_listener_error",
                    error=str(exc),
                    callback=getattr(callback, "__name__", repr(callback)),
                )
