"""Per-document indexing state machine with listener notification.

The tracker is the only component that writes indexing status.  Each
transition builds a new immutable :class:`IndexingStatus`, upserts it
through the status store, then broadcasts it to listeners registered for
that document (the WebSocket status endpoint is one).

Allowed transitions::

    (absent) | PENDING | COMPLETED | FAILED | stale PROCESSING ──start()──→ PROCESSING(0)
    (absent) | COMPLETED | FAILED ──queue()──→ PENDING
    PROCESSING ──chunks_known(n)──→ PROCESSING(30, total_chunks=n)
    PROCESSING ──complete()──→ COMPLETED(100)
    PENDING | PROCESSING ──fail(msg)──→ FAILED(0, error_message=msg)

A record belongs to the organization that created it; ``queue`` and
``start`` from any other organization raise ``DocumentOwnershipError``.

Listener errors are logged and skipped so a dropped WebSocket can never
stall indexing.  Both sync and async callbacks are supported.
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import AsyncIterator, Callable
from datetime import datetime, timezone

import structlog

from ragdesk.interfaces.status_store import IIndexingStatusStore
from ragdesk.models.indexing import IndexingState, IndexingStatus
from ragdesk.utils.errors import DocumentOwnershipError, IndexingError
from ragdesk.utils.logging import get_logger

PROGRESS_STARTED = 0
PROGRESS_CHUNKED = 30
PROGRESS_DONE = 100

_START_FROM = {IndexingState.PENDING, IndexingState.COMPLETED, IndexingState.FAILED}
_QUEUE_FROM = {IndexingState.COMPLETED, IndexingState.FAILED}
_FAIL_FROM = {IndexingState.PENDING, IndexingState.PROCESSING}


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)  # noqa: UP017


class IndexingStatusTracker:
    """Owns the indexing state machine for every document."""

    def __init__(self, store: IIndexingStatusStore, stale_after: float = 600.0) -> None:
        self._store = store
        self._stale_after = stale_after
        self._listeners: dict[str, list[Callable]] = {}
        # document_id -> (lock, number of holders and waiters)
        self._locks: dict[str, tuple[asyncio.Lock, int]] = {}
        self._logger: structlog.BoundLogger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    async def queue(self, document_id: str, organization_id: str) -> IndexingStatus:
        """Mark a document as waiting to be indexed."""
        async with self._locked(document_id):
            current = await self._store.get(document_id)
            self._require_owner(current, organization_id)
            self._require(current, _QUEUE_FROM, "queue", allow_absent=True)
            return await self._write(
                current,
                document_id,
                organization_id=organization_id,
                status=IndexingState.PENDING,
                progress=PROGRESS_STARTED,
                total_chunks=0,
                processed_chunks=0,
                error_message=None,
            )

    async def start(self, document_id: str, organization_id: str) -> IndexingStatus:
        """Enter ``processing/0``; resets counters and any previous error.

        A document already ``processing`` cannot be started again unless
        its record has not moved for ``stale_after`` seconds (a crashed run).
        """
        async with self._locked(document_id):
            current = await self._store.get(document_id)
            self._require_owner(current, organization_id)
            if not self._is_stale(current):
                self._require(current, _START_FROM, "start", allow_absent=True)
            return await self._write(
                current,
                document_id,
                organization_id=organization_id,
                status=IndexingState.PROCESSING,
                progress=PROGRESS_STARTED,
                total_chunks=0,
                processed_chunks=0,
                error_message=None,
            )

    async def chunks_known(self, document_id: str, total_chunks: int) -> IndexingStatus:
        """Enter ``processing/30`` with the document's chunk total."""
        async with self._locked(document_id):
            current = await self._store.get(document_id)
            self._require(current, {IndexingState.PROCESSING}, "chunks_known")
            return await self._write(
                current,
                document_id,
                status=IndexingState.PROCESSING,
                progress=PROGRESS_CHUNKED,
                total_chunks=max(0, total_chunks),
            )

    async def complete(self, document_id: str) -> IndexingStatus:
        """Enter ``completed/100``; every known chunk counts as processed."""
        async with self._locked(document_id):
            current = await self._store.get(document_id)
            self._require(current, {IndexingState.PROCESSING}, "complete")
            return await self._write(
                current,
                document_id,
                status=IndexingState.COMPLETED,
                progress=PROGRESS_DONE,
                processed_chunks=current.total_chunks,
            )

    async def fail(self, document_id: str, error_message: str) -> IndexingStatus:
        """Enter ``failed`` with progress reset to 0."""
        async with self._locked(document_id):
            current = await self._store.get(document_id)
            self._require(current, _FAIL_FROM, "fail", allow_absent=True)
            return await self._write(
                current,
                document_id,
                status=IndexingState.FAILED,
                progress=PROGRESS_STARTED,
                error_message=error_message or "Indexing failed",
            )

    async def get(self, document_id: str) -> IndexingStatus | None:
        """Return the latest status record, or ``None`` if the document was never tracked."""
        return await self._store.get(document_id)

    # ------------------------------------------------------------------
    # Listener registry
    # ------------------------------------------------------------------

    def register_listener(self, document_id: str, callback: Callable) -> None:
        """Register a sync or async ``callback(status: IndexingStatus)`` for one document."""
        listeners = self._listeners.setdefault(document_id, [])
        if callback not in listeners:
            listeners.append(callback)
            self._logger.debug(
                "listener_registered",
                document_id=document_id,
                total_listeners=len(listeners),
            )

    def unregister_listener(self, document_id: str, callback: Callable) -> None:
        listeners = self._listeners.get(document_id, [])
        if callback in listeners:
            listeners.remove(callback)
            self._logger.debug(
                "listener_unregistered",
                document_id=document_id,
                remaining_listeners=len(listeners),
            )
        if not listeners:
            self._listeners.pop(document_id, None)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    @contextlib.asynccontextmanager
    async def _locked(self, document_id: str) -> AsyncIterator[None]:
        """Serialize transitions per document; the lock is dropped once unused."""
        lock, users = self._locks.get(document_id) or (asyncio.Lock(), 0)
        self._locks[document_id] = (lock, users + 1)
        try:
            async with lock:
                yield
        finally:
            lock, users = self._locks[document_id]
            if users <= 1:
                del self._locks[document_id]
            else:
                self._locks[document_id] = (lock, users - 1)

    @staticmethod
    def _require_owner(current: IndexingStatus | None, organization_id: str) -> None:
        if (
            current is not None
            and current.organization_id
            and current.organization_id != organization_id
        ):
            raise DocumentOwnershipError(
                message=f"Document {current.document_id} is indexed by another organization"
            )

    def _is_stale(self, current: IndexingStatus | None) -> bool:
        if current is None or current.status is not IndexingState.PROCESSING:
            return False
        return (_utcnow() - current.updated_at).total_seconds() > self._stale_after

    @staticmethod
    def _require(
        current: IndexingStatus | None,
        allowed: set[IndexingState],
        transition: str,
        allow_absent: bool = False,
    ) -> None:
        if current is None:
            if allow_absent:
                return
            raise IndexingError(message=f"Cannot {transition}: document is not being indexed")
        if current.status not in allowed:
            raise IndexingError(
                message=f"Cannot {transition} from state {current.status.value}"
            )

    async def _write(
        self,
        current: IndexingStatus | None,
        document_id: str,
        **fields,
    ) -> IndexingStatus:
        now = _utcnow()
        if current is None:
            status = IndexingStatus(document_id=document_id, created_at=now, updated_at=now, **fields)
        else:
            status = current.model_copy(update={**fields, "updated_at": now})

        await self._store.upsert(status)
        self._logger.info(
            "indexing_status_changed",
            document_id=document_id,
            status=status.status.value,
            progress=status.progress,
            total_chunks=status.total_chunks,
        )
        await self._notify_listeners(status)
        return status

    async def _notify_listeners(self, status: IndexingStatus) -> None:
        for callback in list(self._listeners.get(status.document_id, [])):
            try:
                result = callback(status)
                if asyncio.iscoroutine(result):
                    await result
            except Exception as exc:
                self._logger.warning(
                    "listener_callback_error",
                    document_id=status.document_id,
                    error=str(exc),
                    callback=getattr(callback, "__name__", repr(callback)),
                )
