"""SQLite-backed chunk store.

Persists chunks to a local SQLite database via ``aiosqlite`` and serves
the three retrieval primitives the hybrid search engine needs:

- **ranked_search** -- FTS5 full-text search ordered by ``bm25()``.
  SQLite reports bm25 as a negative number (smaller is better), so the
  returned score is its negation.
- **keyword_search** -- case-insensitive ``LIKE`` containment, used as the
  lexical fallback.
- **vector_search** -- embeddings are stored as float32 blobs; the query
  vector is compared against every chunk of the organization with numpy.

Every statement carries ``organization_id`` in its WHERE clause.
"""

from __future__ import annotations

import json
import re
from datetime import datetime
from pathlib import Path
from typing import Any

import aiosqlite
import numpy as np
import structlog

from ragdesk.interfaces.chunk_store import IChunkStore
from ragdesk.models.rag import Chunk, SearchResult
from ragdesk.utils.errors import ChunkStoreError, LexicalProviderError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/ragdesk.db")

_CREATE_TABLE_SQL = """\
CREATE TABLE IF NOT EXISTS chunks (
    chunk_id         TEXT    PRIMARY KEY,
    document_id      TEXT    NOT NULL,
    organization_id  TEXT    NOT NULL,
    paragraph_index  INTEGER NOT NULL DEFAULT 0,
    title            TEXT    NOT NULL DEFAULT '',
    content          TEXT    NOT NULL,
    embedding        BLOB,
    metadata         TEXT    NOT NULL DEFAULT '{}',
    created_at       TEXT    NOT NULL
);
"""

_CREATE_INDICES_SQL = [
    "CREATE INDEX IF NOT EXISTS idx_chunks_org ON chunks(organization_id);",
    "CREATE INDEX IF NOT EXISTS idx_chunks_org_doc ON chunks(organization_id, document_id);",
]

_CREATE_FTS_SQL = """\
CREATE VIRTUAL TABLE IF NOT EXISTS chunks_fts USING fts5(
    content,
    title,
    chunk_id UNINDEXED,
    organization_id UNINDEXED
);
"""

_INSERT_CHUNK_SQL = """\
INSERT OR REPLACE INTO chunks
    (chunk_id, document_id, organization_id, paragraph_index, title,
     content, embedding, metadata, created_at)
VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?);
"""

_INSERT_FTS_SQL = """\
INSERT INTO chunks_fts (content, title, chunk_id, organization_id) VALUES (?, ?, ?, ?);
"""

_RANKED_SEARCH_SQL = """\
SELECT c.chunk_id, c.document_id, c.organization_id, c.title, c.content,
       c.metadata, bm25(chunks_fts) AS rank
FROM chunks_fts
JOIN chunks c ON c.chunk_id = chunks_fts.chunk_id
WHERE chunks_fts MATCH ? AND c.organization_id = ?
ORDER BY rank
LIMIT ?;
"""

_KEYWORD_SEARCH_SQL = """\
SELECT chunk_id, document_id, organization_id, title, content, metadata
FROM chunks
WHERE organization_id = ? AND content LIKE ? ESCAPE '\\'
ORDER BY document_id, paragraph_index
LIMIT ?;
"""

_VECTOR_CANDIDATES_SQL = """\
SELECT chunk_id, document_id, organization_id, title, content, metadata, embedding
FROM chunks
WHERE organization_id = ? AND embedding IS NOT NULL;
"""

_TOKEN_RE = re.compile(r"\w+", re.UNICODE)


def _fts_expression(query: str) -> str:
    """Turn free text into an FTS5 OR-expression of quoted terms.

    Quoting every token keeps user punctuation (``?``, ``'``, ``-``) from
    being parsed as FTS5 operators.
    """
    tokens = _TOKEN_RE.findall(query.lower())
    return " OR ".join(f'"{tok}"' for tok in tokens)


def _escape_like(keyword: str) -> str:
    return keyword.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _row_to_result(row: aiosqlite.Row, score: float) -> SearchResult:
    return SearchResult(
        chunk_id=row["chunk_id"],
        document_id=row["document_id"],
        organization_id=row["organization_id"],
        title=row["title"],
        content=row["content"],
        score=score,
        metadata=json.loads(row["metadata"] or "{}"),
    )


class SQLiteChunkStore(IChunkStore):
    """Chunk persistence with FTS5 lexical search and numpy vector search."""

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH) -> None:
        self._db_path = Path(db_path)
        self._fts_enabled = False

    async def initialize(self) -> None:
        """Create tables, indices and the FTS5 index if they don't exist.

        When the SQLite build lacks FTS5, ranked search is disabled and
        every lexical query goes through the keyword fallback.
        """
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.execute(_CREATE_TABLE_SQL)
            for idx_sql in _CREATE_INDICES_SQL:
                await db.execute(idx_sql)
            try:
                await db.execute(_CREATE_FTS_SQL)
                self._fts_enabled = True
            except aiosqlite.OperationalError as exc:
                logger.warning("chunk_store_fts_unavailable", error=str(exc))
                self._fts_enabled = False
            await db.commit()
        logger.info("chunk_store_initialized", path=str(self._db_path), fts=self._fts_enabled)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def add_chunks(self, chunks: list[Chunk]) -> int:
        if not chunks:
            return 0

        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                await self._insert(db, chunks)
                await db.commit()
        except aiosqlite.Error as exc:
            raise ChunkStoreError(
                message=f"Failed to write {len(chunks)} chunks: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.info(
            "chunks_written",
            count=len(chunks),
            document_id=chunks[0].document_id,
            organization_id=chunks[0].organization_id,
        )
        return len(chunks)

    async def delete_by_document(self, document_id: str, organization_id: str) -> int:
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                deleted = await self._delete(db, document_id, organization_id)
                await db.commit()
        except aiosqlite.Error as exc:
            raise ChunkStoreError(
                message=f"Failed to delete chunks of {document_id}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        if deleted:
            logger.info("chunks_deleted", document_id=document_id, count=deleted)
        return deleted

    async def replace_document_chunks(
        self, document_id: str, organization_id: str, chunks: list[Chunk]
    ) -> int:
        """Swap a document's chunks for *chunks* with a single commit.

        On failure nothing is committed and the previous chunks stay.
        """
        foreign = [c.chunk_id for c in chunks if c.organization_id != organization_id]
        if foreign:
            raise ChunkStoreError(
                message=f"{len(foreign)} chunks do not belong to organization {organization_id}",
                provider_name=self.get_provider_name(),
            )

        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                removed = await self._delete(db, document_id, organization_id)
                await self._insert(db, chunks)
                await db.commit()
        except aiosqlite.Error as exc:
            raise ChunkStoreError(
                message=f"Failed to replace chunks of {document_id}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.info(
            "chunks_replaced",
            document_id=document_id,
            organization_id=organization_id,
            removed=removed,
            written=len(chunks),
        )
        return len(chunks)

    async def _insert(self, db: aiosqlite.Connection, chunks: list[Chunk]) -> None:
        chunk_rows: list[tuple[Any, ...]] = []
        fts_rows: list[tuple[Any, ...]] = []
        for chunk in chunks:
            blob = (
                np.asarray(chunk.embedding, dtype=np.float32).tobytes()
                if chunk.embedding
                else None
            )
            chunk_rows.append(
                (
                    chunk.chunk_id,
                    chunk.document_id,
                    chunk.organization_id,
                    chunk.paragraph_index,
                    chunk.title,
                    chunk.content,
                    blob,
                    json.dumps(chunk.metadata),
                    chunk.created_at.isoformat(),
                )
            )
            fts_rows.append((chunk.content, chunk.title, chunk.chunk_id, chunk.organization_id))

        await db.executemany(_INSERT_CHUNK_SQL, chunk_rows)
        if self._fts_enabled:
            await db.executemany(_INSERT_FTS_SQL, fts_rows)

    async def _delete(
        self, db: aiosqlite.Connection, document_id: str, organization_id: str
    ) -> int:
        if self._fts_enabled:
            await db.execute(
                "DELETE FROM chunks_fts WHERE chunk_id IN ("
                "SELECT chunk_id FROM chunks WHERE document_id = ? AND organization_id = ?)",
                (document_id, organization_id),
            )
        cursor = await db.execute(
            "DELETE FROM chunks WHERE document_id = ? AND organization_id = ?",
            (document_id, organization_id),
        )
        return cursor.rowcount

    # ------------------------------------------------------------------
    # Retrieval
    # ------------------------------------------------------------------

    async def ranked_search(
        self, query: str, organization_id: str, limit: int
    ) -> list[SearchResult]:
        if not self._fts_enabled:
            raise LexicalProviderError(
                message="FTS5 is not available in this SQLite build",
                provider_name=self.get_provider_name(),
            )

        expression = _fts_expression(query)
        if not expression:
            return []

        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                db.row_factory = aiosqlite.Row
                cursor = await db.execute(
                    _RANKED_SEARCH_SQL, (expression, organization_id, limit)
                )
                rows = await cursor.fetchall()
        except aiosqlite.Error as exc:
            raise LexicalProviderError(
                message=f"Ranked search failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        return [_row_to_result(row, max(0.0, -float(row["rank"]))) for row in rows]

    async def keyword_search(
        self, keyword: str, organization_id: str, limit: int
    ) -> list[SearchResult]:
        pattern = f"%{_escape_like(keyword)}%"
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                db.row_factory = aiosqlite.Row
                cursor = await db.execute(_KEYWORD_SEARCH_SQL, (organization_id, pattern, limit))
                rows = await cursor.fetchall()
        except aiosqlite.Error as exc:
            raise ChunkStoreError(
                message=f"Keyword search failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        return [_row_to_result(row, 0.0) for row in rows]

    async def vector_search(
        self,
        embedding: list[float],
        organization_id: str,
        threshold: float,
        limit: int,
    ) -> list[SearchResult]:
        query_vec = np.asarray(embedding, dtype=np.float32)
        query_norm = float(np.linalg.norm(query_vec))
        if query_norm == 0.0:
            return []

        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                db.row_factory = aiosqlite.Row
                cursor = await db.execute(_VECTOR_CANDIDATES_SQL, (organization_id,))
                rows = await cursor.fetchall()
        except aiosqlite.Error as exc:
            raise ChunkStoreError(
                message=f"Vector search failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        scored: list[tuple[float, aiosqlite.Row]] = []
        skipped = 0
        for row in rows:
            vec = np.frombuffer(row["embedding"], dtype=np.float32)
            if vec.shape != query_vec.shape:
                skipped += 1
                continue
            norm = float(np.linalg.norm(vec))
            if norm == 0.0:
                continue
            similarity = float(np.dot(query_vec, vec) / (query_norm * norm))
            if similarity > threshold:
                scored.append((similarity, row))

        if skipped:
            logger.warning("vector_dimension_mismatch_rows", skipped=skipped)

        scored.sort(key=lambda pair: pair[0], reverse=True)
        return [_row_to_result(row, sim) for sim, row in scored[:limit]]

    async def count_chunks(self, organization_id: str, document_id: str | None = None) -> int:
        sql = "SELECT COUNT(*) FROM chunks WHERE organization_id = ?"
        params: tuple[Any, ...] = (organization_id,)
        if document_id is not None:
            sql += " AND document_id = ?"
            params = (organization_id, document_id)
        async with aiosqlite.connect(str(self._db_path)) as db:
            cursor = await db.execute(sql, params)
            row = await cursor.fetchone()
        return int(row[0]) if row else 0

    async def get_chunks(self, document_id: str, organization_id: str) -> list[Chunk]:
        """Return one document's chunks in paragraph order."""
        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(
                "SELECT * FROM chunks WHERE document_id = ? AND organization_id = ? "
                "ORDER BY paragraph_index",
                (document_id, organization_id),
            )
            rows = await cursor.fetchall()
        return [
            Chunk(
                chunk_id=row["chunk_id"],
                document_id=row["document_id"],
                organization_id=row["organization_id"],
                content=row["content"],
                embedding=(
                    np.frombuffer(row["embedding"], dtype=np.float32).tolist()
                    if row["embedding"]
                    else []
                ),
                paragraph_index=row["paragraph_index"],
                title=row["title"],
                metadata=json.loads(row["metadata"] or "{}"),
                created_at=datetime.fromisoformat(row["created_at"]),
            )
            for row in rows
        ]

    def get_provider_name(self) -> str:
        return "sqlite_chunk_store"
