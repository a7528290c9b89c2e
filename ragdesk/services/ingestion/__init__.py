"""Document indexing pipeline: chunking, embedding, writing and orchestration."""

from ragdesk.services.ingestion.chunker import TextChunker
from ragdesk.services.ingestion.embedding_generator import EmbeddingGenerator, cosine_similarity
from ragdesk.services.ingestion.index_writer import IndexWriter
from ragdesk.services.ingestion.indexing_service import IndexingService

__all__ = [
    "EmbeddingGenerator",
    "IndexWriter",
    "IndexingService",
    "TextChunker",
    "cosine_similarity",
]
