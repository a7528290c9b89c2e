"""WebSocket endpoint for live indexing status updates.

Subscribes a client to one document through the
:class:`IndexingStatusTracker` listener mechanism::

    client                               server
    ws = new WebSocket(url)   ──────→   accept(), register_listener(cb)
                              ←──────   current status snapshot
                              ←──────   status push on every transition
    ws.close()                ──────→   WebSocketDisconnect
                                         unregister_listener(cb)

Every message is an ``IndexingStatus`` serialised to JSON.  Before the
document has ever been tracked, the snapshot is
``{"document_id": ..., "status": null}``.

The caller's organization comes from the ``X-Organization-Id`` header
(development default from settings).  A document tracked under another
organization looks untracked: the snapshot is ``null`` and no listener
is registered.
"""

from __future__ import annotations

import contextlib

import structlog
from fastapi import WebSocket, WebSocketDisconnect

from ragdesk.config.settings import Settings
from ragdesk.models.indexing import IndexingStatus
from ragdesk.pipeline.status_tracker import IndexingStatusTracker
from ragdesk.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)


def _caller_organization(websocket: WebSocket) -> str:
    app_settings: Settings = websocket.app.state.settings
    return websocket.headers.get("x-organization-id") or app_settings.default_organization_id


async def _wait_for_disconnect(websocket: WebSocket) -> None:
    with contextlib.suppress(WebSocketDisconnect):
        while True:
            await websocket.receive_text()


async def websocket_indexing_status(websocket: WebSocket, document_id: str) -> None:
    """Stream indexing status updates for *document_id* to the client."""
    tracker: IndexingStatusTracker = websocket.app.state.status_tracker
    organization_id = _caller_organization(websocket)
    untracked = {"document_id": document_id, "status": None}

    await websocket.accept()
    _logger.info(
        "websocket_connected", document_id=document_id, organization_id=organization_id
    )

    current = await tracker.get(document_id)
    if current is not None and current.organization_id != organization_id:
        _logger.warning(
            "websocket_foreign_document",
            document_id=document_id,
            organization_id=organization_id,
        )
        await websocket.send_json(untracked)
        await _wait_for_disconnect(websocket)
        return

    async def _on_status(status: IndexingStatus) -> None:
        if status.organization_id != organization_id:
            return
        # The socket may close between the transition and the send; the
        # finally block below unregisters the listener.
        with contextlib.suppress(Exception):
            await websocket.send_json(status.model_dump(mode="json"))

    tracker.register_listener(document_id, _on_status)

    try:
        current = await tracker.get(document_id)
        if current is None or current.organization_id != organization_id:
            await websocket.send_json(untracked)
        else:
            await websocket.send_json(current.model_dump(mode="json"))

        # Blocks until the client disconnects.
        while True:
            await websocket.receive_text()

    except WebSocketDisconnect:
        _logger.info("websocket_disconnected", document_id=document_id)

    finally:
        tracker.unregister_listener(document_id, _on_status)
        _logger.debug("websocket_listener_cleaned_up", document_id=document_id)
