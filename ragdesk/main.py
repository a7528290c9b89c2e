"""ragdesk FastAPI application entry point.

Wires together all providers, services, and routes via dependency
injection.  Loads configuration from ``.env`` and ``config/config.yaml``
and configures structured logging.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

import structlog
import uvicorn
from fastapi import FastAPI, WebSocket

from ragdesk.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
)
from ragdesk.api.routes import router as api_router
from ragdesk.api.websocket import websocket_indexing_status
from ragdesk.config.loader import load_config
from ragdesk.config.settings import Settings
from ragdesk.interfaces.embedding_provider import IEmbeddingProvider
from ragdesk.interfaces.llm_provider import ILLMProvider
from ragdesk.pipeline.status_tracker import IndexingStatusTracker
from ragdesk.providers.cache.memory_cache import MemoryCacheProvider
from ragdesk.providers.chunk_store.sqlite_chunk_store import SQLiteChunkStore
from ragdesk.providers.documents.filesystem_source import FilesystemDocumentSource
from ragdesk.providers.embedding.nomic_embedding_provider import NomicEmbeddingProvider
from ragdesk.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider
from ragdesk.providers.extraction.pdf_extractor import PDFTextExtractor
from ragdesk.providers.extraction.text_extractor import (
    CompositeTextExtractor,
    PlainTextExtractor,
)
from ragdesk.providers.llm.anthropic_provider import AnthropicLLMProvider
from ragdesk.providers.llm.ollama_provider import OllamaLLMProvider
from ragdesk.providers.llm.openai_provider import OpenAILLMProvider
from ragdesk.providers.status.sqlite_status_store import SQLiteIndexingStatusStore
from ragdesk.providers.usage.sqlite_usage_recorder import SQLiteUsageRecorder
from ragdesk.services.chat_service import ChatService
from ragdesk.services.ingestion.chunker import TextChunker
from ragdesk.services.ingestion.embedding_generator import EmbeddingGenerator
from ragdesk.services.ingestion.index_writer import IndexWriter
from ragdesk.services.ingestion.indexing_service import IndexingService
from ragdesk.services.search_service import HybridSearchEngine, SearchWeights
from ragdesk.services.usage_meter import UsageMeter
from ragdesk.streaming.producer import StreamProducer
from ragdesk.utils.concurrency import drain_background_tasks
from ragdesk.utils.errors import ConfigurationError
from ragdesk.utils.logging import configure_logging, get_logger

# ---------------------------------------------------------------------------
# Module-level settings & logging
# ---------------------------------------------------------------------------

settings = Settings()
config = load_config(settings=settings)

configure_logging(
    log_level=settings.log_level,
    json_output=(settings.app_env == "production"),
)
_logger: structlog.BoundLogger = get_logger(__name__)

_APP_NAME = str(config.get("app", {}).get("name", "ragdesk"))
_APP_VERSION = str(config.get("app", {}).get("version", "0.1.0"))

_LLM_BUILDERS = {
    "openai": OpenAILLMProvider,
    "anthropic": AnthropicLLMProvider,
    "ollama": OllamaLLMProvider,
}


# ---------------------------------------------------------------------------
# Provider selection
# ---------------------------------------------------------------------------


def _build_llm_provider(app_settings: Settings) -> ILLMProvider:
    """Select the LLM provider.

    ``LLM_PROVIDER`` forces one; otherwise the first configured provider
    wins, in the order OpenAI -> Anthropic -> Ollama.
    """
    forced = app_settings.llm_provider.strip().lower()
    if forced:
        if forced not in _LLM_BUILDERS:
            raise ConfigurationError(
                message=f"Unknown LLM_PROVIDER {forced!r}; expected one of {sorted(_LLM_BUILDERS)}"
            )
        return _LLM_BUILDERS[forced](settings=app_settings)

    available = app_settings.get_available_llm_providers()
    if available:
        return _LLM_BUILDERS[available[0]](settings=app_settings)
    return OllamaLLMProvider(settings=app_settings)


def _build_embedding_provider(app_settings: Settings) -> IEmbeddingProvider:
    """OpenAI (or an OpenAI-compatible endpoint) when a key is set, else Nomic via Ollama."""
    if app_settings.openai_api_key:
        return OpenAIEmbeddingProvider(settings=app_settings)
    return NomicEmbeddingProvider(settings=app_settings)


# ---------------------------------------------------------------------------
# Full DI assembly for the FastAPI application
# ---------------------------------------------------------------------------


def _build_all(app_settings: Settings) -> dict[str, Any]:
    """Construct every provider and service instance for the application.

    Returns a flat dict of named components to be stored on ``app.state``.
    """
    db_path = Path(app_settings.database_path)

    # -- Providers --
    llm = _build_llm_provider(app_settings)
    embedding_provider = _build_embedding_provider(app_settings)
    chunk_store = SQLiteChunkStore(db_path=db_path)
    status_store = SQLiteIndexingStatusStore(db_path=db_path)
    usage_recorder = SQLiteUsageRecorder(db_path=db_path)
    document_source = FilesystemDocumentSource(root=app_settings.document_dir)
    cache = MemoryCacheProvider(max_size=1000, ttl=app_settings.chat_cache_ttl)
    extractor = CompositeTextExtractor([PDFTextExtractor(), PlainTextExtractor()])

    # -- Indexing --
    embeddings = EmbeddingGenerator(
        embedding_provider, batch_size=app_settings.embedding_batch_size
    )
    status_tracker = IndexingStatusTracker(store=status_store)
    indexing_service = IndexingService(
        extractor=extractor,
        chunker=TextChunker(max_size=app_settings.chunk_max_size),
        embeddings=embeddings,
        writer=IndexWriter(
            chunk_store, replace_existing=app_settings.indexing_replace_on_reindex
        ),
        tracker=status_tracker,
        document_source=document_source,
    )

    # -- Retrieval & answers --
    search_engine = HybridSearchEngine(
        store=chunk_store,
        embeddings=embeddings,
        weights=SearchWeights(
            lexical=app_settings.search_lexical_weight,
            vector=app_settings.search_vector_weight,
            similarity_threshold=app_settings.search_similarity_threshold,
            fallback_score=app_settings.search_fallback_score,
            default_limit=app_settings.search_default_limit,
            max_limit=app_settings.search_max_limit,
        ),
    )
    chat_service = ChatService(
        search=search_engine,
        llm=llm,
        cache=cache,
        meter=UsageMeter(usage_recorder, cost_per_token=app_settings.cost_per_token),
        source_limit=app_settings.chat_source_limit,
        cache_ttl=app_settings.chat_cache_ttl,
        temperature=app_settings.chat_temperature,
        max_tokens=app_settings.chat_max_tokens,
    )

    provider_registry: dict[str, Any] = {
        "llm": llm.is_available(),
        "llm_provider": llm.get_provider_name(),
        "embedding": embedding_provider.is_available(),
        "embedding_provider": embedding_provider.get_provider_name(),
        "chunk_store": chunk_store.get_provider_name(),
    }

    return {
        "settings": app_settings,
        "chunk_store": chunk_store,
        "status_store": status_store,
        "usage_recorder": usage_recorder,
        "document_source": document_source,
        "status_tracker": status_tracker,
        "indexing_service": indexing_service,
        "search_engine": search_engine,
        "chat_service": chat_service,
        "stream_producer": StreamProducer(chat_service),
        "provider_registry": provider_registry,
    }


# ---------------------------------------------------------------------------
# Application lifespan (startup / shutdown)
# ---------------------------------------------------------------------------


@asynccontextmanager
async def _lifespan(application: FastAPI):  # noqa: ANN201
    """Initialise all providers and services on startup, clean up on shutdown."""
    components = _build_all(settings)

    for key, value in components.items():
        setattr(application.state, key, value)

    # Create tables (idempotent)
    await components["chunk_store"].initialize()
    await components["status_store"].initialize()
    await components["usage_recorder"].initialize()

    _logger.info(
        "app_startup",
        version=_APP_VERSION,
        environment=settings.app_env,
        providers=components["provider_registry"],
    )

    yield

    # -- Shutdown: let pending usage writes finish --
    await drain_background_tasks()
    _logger.info("app_shutdown")


# ---------------------------------------------------------------------------
# FastAPI application factory
# ---------------------------------------------------------------------------


def create_app() -> FastAPI:
    """Build and configure the FastAPI application."""
    application = FastAPI(
        title=f"{_APP_NAME} API",
        version=_APP_VERSION,
        description=(
            "Index organization documents into searchable chunks, run hybrid "
            "lexical + semantic search over them, and answer questions grounded "
            "in the results, in one shot or streamed."
        ),
        lifespan=_lifespan,
    )

    # -- Middleware (order matters: last added = first executed) --
    application.add_middleware(ErrorHandlingMiddleware)
    application.add_middleware(RequestLoggingMiddleware)
    origins = [o.strip() for o in settings.cors_origins.split(",") if o.strip()]
    configure_cors(application, allowed_origins=origins or None)

    # -- API routes --
    application.include_router(api_router)

    # -- WebSocket --
    @application.websocket("/ws/indexing/{document_id}")
    async def ws_indexing(websocket: WebSocket, document_id: str) -> None:
        await websocket_indexing_status(websocket, document_id)

    return application


app = create_app()

# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    uvicorn.run(
        "ragdesk.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=(settings.app_env == "development"),
    )
