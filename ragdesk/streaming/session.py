"""Explicit per-session state with a one-shot terminal guard.

A :class:`StreamSession` is created for each user-initiated query.  Its
terminal transition (``completed``, ``errored`` or ``aborted``) happens
through :meth:`StreamSession.mark_terminal`, a compare-and-set that
succeeds exactly once; every later call returns ``False`` and changes
nothing.  A ``threading.Lock`` guards the check-and-set so the guarantee
also holds when events are delivered from another thread (e.g. an HTTP
client callback).
"""

from __future__ import annotations

import threading
import uuid

from ragdesk.models.chat import Source
from ragdesk.models.stream import SessionState

_TERMINAL = frozenset({SessionState.COMPLETED, SessionState.ABORTED, SessionState.ERRORED})


def new_session_id() -> str:
    return uuid.uuid4().hex


class StreamSession:
    """One query-to-answer exchange."""

    def __init__(self, query: str, session_id: str | None = None) -> None:
        self.session_id = session_id or new_session_id()
        self.query = query
        self._state = SessionState.IDLE
        self._buffer: list[str] = []
        self._sources: list[Source] = []
        self._error: str | None = None
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_terminal(self) -> bool:
        return self._state in _TERMINAL

    @property
    def content(self) -> str:
        return "".join(self._buffer)

    @property
    def sources(self) -> list[Source]:
        return list(self._sources)

    @property
    def error(self) -> str | None:
        return self._error

    def begin(self) -> None:
        """``idle -> streaming``; ignored once the session has moved on."""
        with self._lock:
            if self._state is SessionState.IDLE:
                self._state = SessionState.STREAMING

    def append(self, text: str) -> bool:
        """Add a delta to the buffer; returns ``False`` after termination."""
        with self._lock:
            if self._state in _TERMINAL:
                return False
            self._buffer.append(text)
            return True

    def set_sources(self, sources: list[Source]) -> bool:
        """Replace the sources snapshot; returns ``False`` after termination."""
        with self._lock:
            if self._state in _TERMINAL:
                return False
            self._sources = list(sources)
            return True

    def mark_terminal(self, state: SessionState, error: str | None = None) -> bool:
        """Atomically move to a terminal *state*; only the first call wins."""
        if state not in _TERMINAL:
            raise ValueError(f"{state.value} is not a terminal state")
        with self._lock:
            if self._state in _TERMINAL:
                return False
            self._state = state
            if error is not None:
                self._error = error
            return True

    def reset(self) -> None:
        """Drop the buffer, sources and error (state is left untouched)."""
        with self._lock:
            self._buffer.clear()
            self._sources = []
            self._error = None
