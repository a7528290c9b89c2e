"""httpx client that consumes ``/api/v1/chat/stream`` into a StreamConsumer.

Each received frame is tagged with the session id that was active when
the request started, so frames still in flight after :meth:`cancel` are
recognised as stale and dropped by the consumer.
"""

from __future__ import annotations

import asyncio

import httpx
import structlog

from ragdesk.models.stream import ErrorEvent, FinalizedMessage
from ragdesk.streaming.consumer import StreamConsumer
from ragdesk.streaming.framing import parse_frame

logger = structlog.get_logger(logger_name=__name__)

STREAM_PATH = "/api/v1/chat/stream"


class ChatStreamClient:
    """Streams answers from a ragdesk server.

    Parameters
    ----------
    client:
        Configured ``httpx.AsyncClient`` (base URL, auth headers, timeouts).
    consumer:
        Consumer that accumulates the answer; a new one is created if omitted.
    """

    def __init__(self, client: httpx.AsyncClient, consumer: StreamConsumer | None = None) -> None:
        self._client = client
        self.consumer = consumer or StreamConsumer()
        self._task: asyncio.Task | None = None

    async def ask(self, query: str) -> FinalizedMessage | None:
        """Stream one answer; returns the finalized message, or ``None``.

        ``None`` means the request was ignored (another answer is still
        streaming), cancelled, or ended with an error (see
        ``consumer.last_error``).
        """
        session_id = self.consumer.begin(query)
        if session_id is None:
            return None

        try:
            async with self._client.stream("POST", STREAM_PATH, json={"query": query}) as response:
                if response.status_code != 200:
                    body = (await response.aread()).decode("utf-8", errors="replace")
                    self.consumer.handle(
                        ErrorEvent(
                            message=f"HTTP {response.status_code}: {body[:200]}",
                            session_id=session_id,
                        )
                    )
                    return None

                async for line in response.aiter_lines():
                    event = parse_frame(line, session_id)
                    if event is None:
                        continue
                    self.consumer.handle(event)
                    if self.consumer.active_session_id != session_id:
                        break  # terminal frame received, or cancelled
        except httpx.HTTPError as exc:
            logger.warning("chat_stream_transport_error", error=str(exc))
            self.consumer.handle(ErrorEvent(message=str(exc), session_id=session_id))
            return None

        if self.consumer.active_session_id == session_id:
            # Connection closed without a terminal frame.
            self.consumer.handle(
                ErrorEvent(message="Stream ended unexpectedly", session_id=session_id)
            )
            return None

        return self._finalized(session_id)

    def start(self, query: str) -> asyncio.Task | None:
        """Run :meth:`ask` in the background; ``None`` if a stream is active."""
        if self.consumer.is_streaming:
            return None
        self._task = asyncio.create_task(self.ask(query), name="chat_stream")
        return self._task

    def cancel(self) -> None:
        """Reset local state now and tear down the in-flight request."""
        self.consumer.cancel()
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    def _finalized(self, session_id: str) -> FinalizedMessage | None:
        for message in reversed(self.consumer.messages):
            if message.session_id == session_id:
                return message
        return None
