"""ragdesk API layer: routes, schemas, WebSocket, and middleware."""

from ragdesk.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
)
from ragdesk.api.routes import router
from ragdesk.api.schemas import (
    BatchIndexRequest,
    BatchIndexResponse,
    ChatRequest,
    ErrorResponse,
    HealthResponse,
    SearchResponseBody,
)
from ragdesk.api.websocket import websocket_indexing_status

__all__ = [
    "ErrorHandlingMiddleware",
    "RequestLoggingMiddleware",
    "configure_cors",
    "router",
    "websocket_indexing_status",
    "BatchIndexRequest",
    "BatchIndexResponse",
    "ChatRequest",
    "ErrorResponse",
    "HealthResponse",
    "SearchResponseBody",
]
