"""Shared pytest fixtures for the ragdesk test suite."""

from __future__ import annotations

import hashlib
import struct
from pathlib import Path
from typing import AsyncIterator

import aiosqlite
import pytest

from ragdesk.interfaces.embedding_provider import IEmbeddingProvider
from ragdesk.interfaces.llm_provider import ILLMProvider
from ragdesk.interfaces.status_store import IIndexingStatusStore
from ragdesk.interfaces.usage_recorder import IUsageRecorder
from ragdesk.models.chat import LLMCompletion, TokenUsage, UsageRecord
from ragdesk.models.indexing import IndexingStatus
from ragdesk.models.rag import Chunk, SearchResult
from ragdesk.providers.chunk_store.sqlite_chunk_store import SQLiteChunkStore
from ragdesk.utils.errors import LLMProviderError

# ---------------------------------------------------------------------------
# Text fixtures
# ---------------------------------------------------------------------------

LONG_PARAGRAPH_A = (
    "Employees may request a refund of travel expenses within thirty days. "
    "Receipts must be attached to every claim submitted through the portal."
)
LONG_PARAGRAPH_B = (
    "Remote work is allowed up to three days per week with manager approval. "
    "Core collaboration hours are from ten in the morning until three."
)


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def handbook_text() -> str:
    return f"Employee Handbook\n\n{LONG_PARAGRAPH_A}\n\n{LONG_PARAGRAPH_B}\n"


# ---------------------------------------------------------------------------
# Deterministic embeddings
# ---------------------------------------------------------------------------

EMBEDDING_DIM = 16


def hash_to_vector(text: str, dim: int = EMBEDDING_DIM) -> list[float]:
    """Deterministic unit-length vector derived from SHA-256 of *text*."""
    raw = hashlib.sha256(text.encode("utf-8")).digest()
    while len(raw) < dim * 4:
        raw += hashlib.sha256(raw).digest()
    values = [v / 2**31 for v in struct.unpack(f"<{dim}i", raw[: dim * 4])]
    magnitude = max(sum(v * v for v in values) ** 0.5, 1e-10)
    return [v / magnitude for v in values]


class MockEmbeddingProvider(IEmbeddingProvider):
    """In-memory deterministic embedding provider for tests."""

    def __init__(self) -> None:
        self.calls: list[list[str]] = []

    async def embed(self, texts: list[str]) -> list[list[float]]:
        self.calls.append(list(texts))
        return [hash_to_vector(t) for t in texts]

    async def embed_single(self, text: str) -> list[float]:
        return hash_to_vector(text)

    def get_dimension(self) -> int:
        return EMBEDDING_DIM

    def get_provider_name(self) -> str:
        return "mock-embedding"

    def is_available(self) -> bool:
        return True


@pytest.fixture
def mock_embedding_provider() -> MockEmbeddingProvider:
    return MockEmbeddingProvider()


# ---------------------------------------------------------------------------
# Scripted LLM
# ---------------------------------------------------------------------------


class ScriptedLLMProvider(ILLMProvider):
    """LLM double that replays fixed deltas and records how it was used.

    ``fail_after`` raises :class:`LLMProviderError` once that many deltas
    have been yielded.
    """

    def __init__(
        self,
        deltas: list[str] | None = None,
        fail_after: int | None = None,
        usage: TokenUsage | None = None,
    ) -> None:
        self.deltas = deltas if deltas is not None else ["Refunds ", "take ", "thirty days."]
        self.fail_after = fail_after
        self.usage = usage or TokenUsage(prompt_tokens=120, completion_tokens=30, total_tokens=150)
        self.complete_calls: list[str] = []
        self.stream_calls = 0
        self.yielded = 0
        self.closed = False

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.7,
        max_tokens: int = 1000,
    ) -> LLMCompletion:
        self.complete_calls.append(user_prompt)
        return LLMCompletion(content="".join(self.deltas), usage=self.usage, model="scripted")

    async def stream(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.7,
        max_tokens: int = 1000,
    ) -> AsyncIterator[str]:
        self.stream_calls += 1
        try:
            for index, delta in enumerate(self.deltas):
                if self.fail_after is not None and index >= self.fail_after:
                    raise LLMProviderError(message="model went away", provider_name="scripted")
                self.yielded += 1
                yield delta
        finally:
            self.closed = True

    def get_provider_name(self) -> str:
        return "scripted"

    def is_available(self) -> bool:
        return True


@pytest.fixture
def scripted_llm() -> ScriptedLLMProvider:
    return ScriptedLLMProvider()


# ---------------------------------------------------------------------------
# In-memory collaborators
# ---------------------------------------------------------------------------


class InMemoryStatusStore(IIndexingStatusStore):
    def __init__(self) -> None:
        self.records: dict[str, IndexingStatus] = {}
        self.history: list[IndexingStatus] = []

    async def upsert(self, status: IndexingStatus) -> None:
        self.records[status.document_id] = status
        self.history.append(status)

    async def get(self, document_id: str) -> IndexingStatus | None:
        return self.records.get(document_id)


class InMemoryUsageRecorder(IUsageRecorder):
    def __init__(self) -> None:
        self.records: list[UsageRecord] = []

    async def record(self, usage: UsageRecord) -> None:
        self.records.append(usage)

    async def total_for_organization(self, organization_id: str) -> tuple[int, float]:
        rows = [r for r in self.records if r.organization_id == organization_id]
        return sum(r.tokens_used for r in rows), sum(r.cost for r in rows)


class InterruptedWriteChunkStore(SQLiteChunkStore):
    """Writes its rows, then fails before the transaction is committed."""

    interrupt = False

    async def _insert(self, db: aiosqlite.Connection, chunks: list[Chunk]) -> None:
        await super()._insert(db, chunks)
        if self.interrupt:
            raise aiosqlite.OperationalError("database or disk is full")


@pytest.fixture
def status_store() -> InMemoryStatusStore:
    return InMemoryStatusStore()


@pytest.fixture
def usage_recorder() -> InMemoryUsageRecorder:
    return InMemoryUsageRecorder()


def make_result(
    chunk_id: str,
    score: float,
    organization_id: str = "org-1",
    content: str | None = None,
    title: str = "Handbook",
) -> SearchResult:
    return SearchResult(
        chunk_id=chunk_id,
        document_id=f"doc-{chunk_id}",
        organization_id=organization_id,
        title=title,
        content=content or f"content of {chunk_id}",
        score=score,
    )
