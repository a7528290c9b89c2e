"""FastAPI API routes for ragdesk.

Endpoint                              Method  Description
──────────────────────────────────────────────────────────────────────
/api/v1/search?q=&limit=&offset=      GET     Hybrid search within the org
/api/v1/chat                          POST    Grounded answer (cached)
/api/v1/chat/stream                   POST    Grounded answer as SSE frames
/api/v1/indexing/batch                POST    Index stored documents
/api/v1/indexing/{document_id}        POST    Upload + index one document
/api/v1/indexing/{document_id}/status GET     Latest indexing status
/api/v1/health                        GET     Health check + provider status

Service dependencies are resolved from ``app.state`` (populated by
``main._build_all``) with ``Annotated[T, Depends(fn)]``.  The caller's
identity comes from the ``X-User-Id`` / ``X-Organization-Id`` headers set
by the upstream gateway, falling back to the development defaults.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Annotated, Any

import structlog
from fastapi import APIRouter, Depends, File, Header, HTTPException, Query, Request, UploadFile
from fastapi.responses import StreamingResponse

from ragdesk.api.schemas import (
    BatchIndexRequest,
    BatchIndexResponse,
    ChatRequest,
    HealthResponse,
    SearchResponseBody,
)
from ragdesk.config.settings import Settings
from ragdesk.interfaces.document_source import IDocumentSource
from ragdesk.models.chat import ChatResponse
from ragdesk.models.indexing import IndexingStatus
from ragdesk.services.chat_service import ChatService
from ragdesk.services.ingestion.indexing_service import IndexingService
from ragdesk.services.search_service import HybridSearchEngine
from ragdesk.streaming.framing import MEDIA_TYPE
from ragdesk.streaming.producer import StreamProducer
from ragdesk.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

router = APIRouter(prefix="/api/v1")

# Cap on a single uploaded document (bytes).
_MAX_UPLOAD_BYTES = 50 * 1024 * 1024


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Caller:
    user_id: str
    organization_id: str


def _get_caller(
    request: Request,
    x_user_id: Annotated[str | None, Header()] = None,
    x_organization_id: Annotated[str | None, Header()] = None,
) -> Caller:
    """Resolve the caller from gateway headers, defaulting to the dev identity."""
    app_settings: Settings = request.app.state.settings
    return Caller(
        user_id=x_user_id or app_settings.default_user_id,
        organization_id=x_organization_id or app_settings.default_organization_id,
    )


def _get_search_engine(request: Request) -> HybridSearchEngine:
    return request.app.state.search_engine


def _get_chat_service(request: Request) -> ChatService:
    return request.app.state.chat_service


def _get_indexing_service(request: Request) -> IndexingService:
    return request.app.state.indexing_service


def _get_stream_producer(request: Request) -> StreamProducer:
    return request.app.state.stream_producer


def _get_document_source(request: Request) -> IDocumentSource:
    return request.app.state.document_source


CallerDep = Annotated[Caller, Depends(_get_caller)]
SearchDep = Annotated[HybridSearchEngine, Depends(_get_search_engine)]
ChatDep = Annotated[ChatService, Depends(_get_chat_service)]
IndexingDep = Annotated[IndexingService, Depends(_get_indexing_service)]
ProducerDep = Annotated[StreamProducer, Depends(_get_stream_producer)]
DocumentSourceDep = Annotated[IDocumentSource, Depends(_get_document_source)]


# ---------------------------------------------------------------------------
# Search
# ---------------------------------------------------------------------------


@router.get(
    "/search",
    response_model=SearchResponseBody,
    summary="Hybrid search over the caller's documents",
)
async def search_documents(
    caller: CallerDep,
    search_engine: SearchDep,
    q: Annotated[str, Query(max_length=1000)] = "",
    limit: Annotated[int | None, Query()] = None,
    offset: Annotated[int, Query(ge=0)] = 0,
) -> SearchResponseBody:
    """Return ``{results, total}``; an empty query returns no results."""
    results = await search_engine.search(q, caller.organization_id, limit=limit, offset=offset)
    return SearchResponseBody(results=results, total=len(results))


# ---------------------------------------------------------------------------
# Chat
# ---------------------------------------------------------------------------


@router.post(
    "/chat",
    response_model=ChatResponse,
    summary="Answer a question from indexed documents",
)
async def chat(body: ChatRequest, caller: CallerDep, chat_service: ChatDep) -> ChatResponse:
    return await chat_service.generate_response(
        body.query, caller.user_id, caller.organization_id
    )


@router.post(
    "/chat/stream",
    summary="Stream an answer as Server-Sent Events",
    response_class=StreamingResponse,
)
async def chat_stream(
    body: ChatRequest, caller: CallerDep, producer: ProducerDep
) -> StreamingResponse:
    """Frames: ``{"sources"}`` once, ``{"content"}`` per delta, then ``[DONE]`` or ``{"error"}``.

    A client disconnect closes the frame generator, which aborts the
    session and closes the upstream model stream.
    """
    session = producer.open_session(body.query)
    frames = producer.frames(
        body.query, caller.user_id, caller.organization_id, session=session
    )
    return StreamingResponse(
        frames,
        media_type=MEDIA_TYPE,
        headers={
            "Cache-Control": "no-cache",
            "X-Accel-Buffering": "no",
            "X-Session-Id": session.session_id,
        },
    )


# ---------------------------------------------------------------------------
# Indexing
# ---------------------------------------------------------------------------


@router.post(
    "/indexing/batch",
    response_model=BatchIndexResponse,
    summary="Index previously uploaded documents",
)
async def batch_index(
    body: BatchIndexRequest, caller: CallerDep, indexing_service: IndexingDep
) -> BatchIndexResponse:
    results = await indexing_service.batch_index_documents(
        body.document_ids, caller.organization_id
    )
    return BatchIndexResponse(results=results)


@router.post(
    "/indexing/{document_id}",
    response_model=IndexingStatus,
    summary="Upload and index one document",
)
async def index_document(
    document_id: str,
    caller: CallerDep,
    indexing_service: IndexingDep,
    document_source: DocumentSourceDep,
    file: Annotated[UploadFile, File()],
) -> IndexingStatus:
    """Store the uploaded binary, then run the indexing pipeline on it."""
    data = await file.read()
    if not data:
        raise HTTPException(status_code=400, detail="Uploaded file is empty.")
    if len(data) > _MAX_UPLOAD_BYTES:
        raise HTTPException(status_code=413, detail="Uploaded file is too large.")

    await document_source.store(document_id, caller.organization_id, data, file.content_type)
    _logger.info(
        "document_uploaded",
        document_id=document_id,
        organization_id=caller.organization_id,
        filename=file.filename,
        size=len(data),
    )
    return await indexing_service.index_document(
        document_id, caller.organization_id, data, file.content_type
    )


@router.get(
    "/indexing/{document_id}/status",
    response_model=IndexingStatus,
    summary="Latest indexing status of a document",
)
async def indexing_status(
    document_id: str, caller: CallerDep, indexing_service: IndexingDep
) -> IndexingStatus:
    status = await indexing_service.get_indexing_status(document_id)
    if status is None or status.organization_id != caller.organization_id:
        raise HTTPException(status_code=404, detail=f"No indexing status for {document_id}")
    return status


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Application health check",
)
async def health_check(request: Request, caller: CallerDep) -> HealthResponse:
    """Return application health, version, and provider availability.

    ``chunks`` counts the indexed chunks visible to the caller's organization.
    """
    providers: dict[str, Any] = dict(getattr(request.app.state, "provider_registry", {}))

    chunk_store = getattr(request.app.state, "chunk_store", None)
    if chunk_store is not None:
        try:
            providers["chunks"] = await chunk_store.count_chunks(caller.organization_id)
        except Exception as exc:
            _logger.warning("health_chunk_count_failed", error=str(exc))
            providers["chunks"] = None

    if providers.get("llm") and providers.get("embedding"):
        status = "healthy"
    elif providers.get("llm") or providers.get("embedding"):
        status = "degraded"
    else:
        status = "unhealthy"

    return HealthResponse(
        status=status,
        version=request.app.version,
        providers=providers,
    )
