"""Abstract interfaces for every external collaborator ragdesk talks to.

Services depend only on these ABCs; concrete adapters live in
``ragdesk/providers/`` and are wired together in ``ragdesk/main.py``.
"""

from ragdesk.interfaces.cache_provider import ICacheProvider
from ragdesk.interfaces.chunk_store import IChunkStore
from ragdesk.interfaces.document_source import IDocumentSource
from ragdesk.interfaces.embedding_provider import IEmbeddingProvider
from ragdesk.interfaces.llm_provider import ILLMProvider
from ragdesk.interfaces.status_store import IIndexingStatusStore
from ragdesk.interfaces.text_extractor import ITextExtractor
from ragdesk.interfaces.usage_recorder import IUsageRecorder

__all__ = [
    "ICacheProvider",
    "IChunkStore",
    "IDocumentSource",
    "IEmbeddingProvider",
    "IIndexingStatusStore",
    "ILLMProvider",
    "ITextExtractor",
    "IUsageRecorder",
]
