"""Embedding provider implementations.

    1. OpenAIEmbeddingProvider -- text-embedding-3-small (1536 dims), needs an API key.
    2. NomicEmbeddingProvider  -- nomic-embed-text via Ollama (768 dims), local.
"""

from ragdesk.providers.embedding.nomic_embedding_provider import NomicEmbeddingProvider
from ragdesk.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider

__all__ = ["OpenAIEmbeddingProvider", "NomicEmbeddingProvider"]
