"""SQLite-backed knowledge-graph store.

# ─── STORAGE LAYOUT ───────────────────────────────────────────────────
#
# entities        one row per Document or Concept.  Embeddings are stored
#                 as little-endian float32 blobs; metadata as JSON text.
# relationships   directed edges keyed by (source, target, class), with
#                 foreign keys into entities and a CHECK against self-loops.
# documents_fts   FTS5 index over Document content and type, kept in step
#                 with entities by triggers (porter + unicode61 tokenizer).
#
# Uses ``aiosqlite`` for async I/O and ``PRAGMA journal_mode=WAL`` so that
# searches keep reading while an ingestion transaction holds the write
# lock.  Every write transaction starts with BEGIN IMMEDIATE, which takes
# the write lock up front; concurrent writers queue on the busy timeout
# instead of failing half-way through a batch.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

import json
import re
import sqlite3
from collections import deque
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import aiosqlite
import numpy as np

from semantic_archive.interfaces.graph_store import GraphTransaction, IGraphStore
from semantic_archive.models.graph import (
    DocumentUpsert,
    Entity,
    EntityClass,
    Neighbor,
    Relationship,
)
from semantic_archive.utils.errors import TransactionError
from semantic_archive.utils.logging import get_logger

logger = get_logger(__name__)

_DEFAULT_DB_PATH = Path("data/semantic_archive.db")
_PROVIDER = "sqlite"

_SCHEMA_SQL = """\
CREATE TABLE IF NOT EXISTS entities (
    id            TEXT PRIMARY KEY,
    entity_class  TEXT NOT NULL CHECK (entity_class IN ('Document', 'Concept')),
    entity_type   TEXT NOT NULL,
    content       TEXT,
    embedding     BLOB,
    metadata      TEXT NOT NULL DEFAULT '{}',
    created_at    TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))
);

CREATE TABLE IF NOT EXISTS relationships (
    source              TEXT NOT NULL REFERENCES entities(id) ON DELETE CASCADE,
    target              TEXT NOT NULL REFERENCES entities(id) ON DELETE CASCADE,
    relationship_class  TEXT NOT NULL DEFAULT 'MENTIONS',
    metadata            TEXT NOT NULL DEFAULT '{}',
    created_at          TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now')),
    PRIMARY KEY (source, target, relationship_class),
    CHECK (source <> target)
);

CREATE INDEX IF NOT EXISTS idx_entities_class ON entities(entity_class);
CREATE INDEX IF NOT EXISTS idx_relationships_target ON relationships(target);

CREATE VIRTUAL TABLE IF NOT EXISTS documents_fts USING fts5(
    id UNINDEXED,
    content,
    entity_type,
    tokenize = 'porter unicode61'
);

CREATE TRIGGER IF NOT EXISTS entities_fts_insert
AFTER INSERT ON entities WHEN new.entity_class = 'Document'
BEGIN
    INSERT INTO documents_fts (id, content, entity_type)
    VALUES (new.id, coalesce(new.content, ''), new.entity_type);
END;

CREATE TRIGGER IF NOT EXISTS entities_fts_update
AFTER UPDATE ON entities
BEGIN
    DELETE FROM documents_fts WHERE id = old.id;
    INSERT INTO documents_fts (id, content, entity_type)
    SELECT new.id, coalesce(new.content, ''), new.entity_type
    WHERE new.entity_class = 'Document';
END;

CREATE TRIGGER IF NOT EXISTS entities_fts_delete
AFTER DELETE ON entities WHEN old.entity_class = 'Document'
BEGIN
    DELETE FROM documents_fts WHERE id = old.id;
END;
"""

_DROP_SQL = """\
DROP TRIGGER IF EXISTS entities_fts_insert;
DROP TRIGGER IF EXISTS entities_fts_update;
DROP TRIGGER IF EXISTS entities_fts_delete;
DROP TABLE IF EXISTS documents_fts;
DROP TABLE IF EXISTS relationships;
DROP TABLE IF EXISTS entities;
"""

_UPSERT_DOCUMENT_SQL = """\
INSERT INTO entities (id, entity_class, entity_type, content, embedding, metadata)
VALUES (?, 'Document', ?, ?, ?, ?)
ON CONFLICT(id)
DO UPDATE SET entity_class = excluded.entity_class,
              entity_type  = excluded.entity_type,
              content      = excluded.content,
              embedding    = excluded.embedding,
              metadata     = excluded.metadata;
"""

_INSERT_CONCEPT_SQL = """\
INSERT INTO entities (id, entity_class, entity_type, metadata)
VALUES (?, 'Concept', ?, ?)
ON CONFLICT(id) DO NOTHING;
"""

_INSERT_RELATIONSHIP_SQL = """\
INSERT INTO relationships (source, target, relationship_class, metadata)
VALUES (?, ?, ?, ?)
ON CONFLICT(source, target, relationship_class) DO NOTHING;
"""

_SELECT_ENTITY_SQL = """\
SELECT id, entity_class, entity_type, content, embedding, metadata, created_at
FROM entities
WHERE id = ?;
"""

_SELECT_NEIGHBORS_SQL = """\
SELECT r.relationship_class, 'outgoing' AS direction,
       e.id, e.entity_type, e.entity_class, e.metadata
FROM relationships r
JOIN entities e ON e.id = r.target
WHERE r.source = ?
UNION ALL
SELECT r.relationship_class, 'incoming' AS direction,
       e.id, e.entity_type, e.entity_class, e.metadata
FROM relationships r
JOIN entities e ON e.id = r.source
WHERE r.target = ?
ORDER BY direction DESC, relationship_class, id;
"""

_SELECT_EMBEDDINGS_SQL = """\
SELECT id, embedding
FROM entities
WHERE entity_class = 'Document' AND embedding IS NOT NULL;
"""

_LEXICAL_SQL = """\
SELECT id, bm25(documents_fts) AS rank
FROM documents_fts
WHERE documents_fts MATCH ?
ORDER BY rank, id
LIMIT ?;
"""

_TERM_RE = re.compile(r"\w+", re.UNICODE)


# ---------------------------------------------------------------------------
# Encoding helpers
# ---------------------------------------------------------------------------


def _encode_embedding(embedding: list[float] | None) -> bytes | None:
    if embedding is None:
        return None
    return np.asarray(embedding, dtype="<f4").tobytes()


def _decode_embedding(blob: bytes | None) -> np.ndarray | None:
    if blob is None:
        return None
    return np.frombuffer(blob, dtype="<f4")


def _fts_query(text: str) -> str | None:
    """Turn free text into an FTS5 query that requires every term.

    Each term is quoted so FTS5 operators in user input (``AND``, ``NEAR``,
    ``*``, column filters) are matched literally.  Returns ``None`` when the
    text has no searchable terms.
    """
    terms = _TERM_RE.findall(text)
    if not terms:
        return None
    return " ".join('"' + term.replace('"', '""') + '"' for term in terms)


def _parse_timestamp(raw: str | None) -> datetime:
    if not raw:
        return datetime.now(tz=timezone.utc)  # noqa: UP017
    return datetime.fromisoformat(raw.replace("Z", "+00:00"))


def _row_to_entity(row: aiosqlite.Row) -> Entity:
    embedding = _decode_embedding(row["embedding"])
    return Entity(
        id=row["id"],
        entity_class=EntityClass(row["entity_class"]),
        entity_type=row["entity_type"],
        content=row["content"],
        embedding=embedding.tolist() if embedding is not None else None,
        metadata=json.loads(row["metadata"] or "{}"),
        created_at=_parse_timestamp(row["created_at"]),
    )


# ---------------------------------------------------------------------------
# Transaction handle
# ---------------------------------------------------------------------------


class _SQLiteGraphTransaction(GraphTransaction):
    """Writes issued on one connection inside BEGIN IMMEDIATE ... COMMIT."""

    def __init__(self, db: aiosqlite.Connection, embedding_dim: int | None) -> None:
        self._db = db
        self._embedding_dim = embedding_dim

    async def upsert_document(self, document: DocumentUpsert) -> None:
        if (
            document.embedding is not None
            and self._embedding_dim is not None
            and len(document.embedding) != self._embedding_dim
        ):
            raise TransactionError(
                message=(
                    f"Document {document.id} embedding has {len(document.embedding)} "
                    f"dimensions, expected {self._embedding_dim}"
                ),
                provider_name=_PROVIDER,
            )
        await self._db.execute(
            _UPSERT_DOCUMENT_SQL,
            (
                document.id,
                document.document_type,
                document.content,
                _encode_embedding(document.embedding),
                json.dumps(document.metadata),
            ),
        )

    async def insert_concept(
        self,
        entity_id: str,
        entity_type: str,
        metadata: dict[str, Any] | None = None,
    ) -> bool:
        cursor = await self._db.execute(
            _INSERT_CONCEPT_SQL,
            (entity_id, entity_type, json.dumps(metadata or {})),
        )
        return cursor.rowcount == 1

    async def insert_relationship(self, relationship: Relationship) -> bool:
        if relationship.source == relationship.target:
            raise TransactionError(
                message=f"Relationship {relationship.source} -> {relationship.target} is a self-loop",
                provider_name=_PROVIDER,
            )
        try:
            cursor = await self._db.execute(
                _INSERT_RELATIONSHIP_SQL,
                (
                    relationship.source,
                    relationship.target,
                    relationship.relationship_class,
                    json.dumps(relationship.metadata),
                ),
            )
        except sqlite3.IntegrityError as exc:
            raise TransactionError(
                message=(
                    f"Relationship {relationship.source} -> {relationship.target} "
                    f"rejected: {exc}"
                ),
                provider_name=_PROVIDER,
            ) from exc
        return cursor.rowcount == 1

    async def reaches(self, start: str, goal: str) -> bool:
        if start == goal:
            return True
        seen = {start}
        frontier: deque[str] = deque([start])
        while frontier:
            node = frontier.popleft()
            cursor = await self._db.execute(
                "SELECT target FROM relationships WHERE source = ?", (node,)
            )
            for row in await cursor.fetchall():
                nxt = row["target"]
                if nxt == goal:
                    return True
                if nxt not in seen:
                    seen.add(nxt)
                    frontier.append(nxt)
        return False


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------


class SQLiteGraphStore(IGraphStore):
    """Knowledge graph persisted in a single SQLite database file."""

    def __init__(
        self,
        db_path: str | Path = _DEFAULT_DB_PATH,
        embedding_dim: int | None = None,
        busy_timeout: float = 30.0,
    ) -> None:
        self._db_path = Path(db_path)
        self._embedding_dim = embedding_dim
        self._busy_timeout = busy_timeout

    def get_provider_name(self) -> str:
        return _PROVIDER

    @asynccontextmanager
    async def _connect(self) -> AsyncIterator[aiosqlite.Connection]:
        # isolation_level=None: no implicit BEGIN; transactions are explicit.
        async with aiosqlite.connect(
            str(self._db_path),
            timeout=self._busy_timeout,
            isolation_level=None,
        ) as db:
            db.row_factory = aiosqlite.Row
            await db.execute("PRAGMA foreign_keys=ON;")
            yield db

    async def initialize(self, reset: bool = False) -> None:
        """Create tables, indices and FTS triggers if they don't exist."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        async with self._connect() as db:
            # WAL mode enables concurrent readers while a writer is active.
            await db.execute("PRAGMA journal_mode=WAL;")
            if reset:
                await db.executescript(_DROP_SQL)
                logger.warning("graph_schema_dropped", path=str(self._db_path))
            await db.executescript(_SCHEMA_SQL)
        logger.info("graph_db_initialized", path=str(self._db_path), reset=reset)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[GraphTransaction]:
        async with self._connect() as db:
            try:
                await db.execute("BEGIN IMMEDIATE;")
            except sqlite3.Error as exc:
                raise TransactionError(
                    message=f"Could not open write transaction: {exc}",
                    provider_name=_PROVIDER,
                ) from exc

            try:
                yield _SQLiteGraphTransaction(db, self._embedding_dim)
            except BaseException as exc:
                await self._rollback(db)
                if isinstance(exc, sqlite3.Error):
                    raise TransactionError(
                        message=f"Graph write failed: {exc}",
                        provider_name=_PROVIDER,
                    ) from exc
                raise

            try:
                await db.execute("COMMIT;")
            except sqlite3.Error as exc:
                await self._rollback(db)
                raise TransactionError(
                    message=f"Commit failed: {exc}",
                    provider_name=_PROVIDER,
                ) from exc

    @staticmethod
    async def _rollback(db: aiosqlite.Connection) -> None:
        try:
            await db.execute("ROLLBACK;")
        except sqlite3.Error as exc:
            # Closing the connection discards the open transaction anyway.
            logger.warning("graph_rollback_failed", error=str(exc))

    # -- Reads ---------------------------------------------------------------

    async def get_entity(self, entity_id: str) -> Entity | None:
        async with self._connect() as db:
            cursor = await db.execute(_SELECT_ENTITY_SQL, (entity_id,))
            row = await cursor.fetchone()
        return _row_to_entity(row) if row is not None else None

    async def get_documents(self, document_ids: list[str]) -> dict[str, Entity]:
        if not document_ids:
            return {}
        placeholders = ", ".join("?" for _ in document_ids)
        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT id, entity_class, entity_type, content, embedding, metadata, created_at "
                f"FROM entities WHERE entity_class = 'Document' AND id IN ({placeholders})",  # noqa: S608
                tuple(document_ids),
            )
            rows = await cursor.fetchall()
        return {row["id"]: _row_to_entity(row) for row in rows}

    async def neighbors(self, entity_id: str) -> list[Neighbor]:
        async with self._connect() as db:
            cursor = await db.execute(_SELECT_NEIGHBORS_SQL, (entity_id, entity_id))
            rows = await cursor.fetchall()
        return [
            Neighbor(
                relationship_class=row["relationship_class"],
                direction=row["direction"],
                entity_id=row["id"],
                entity_type=row["entity_type"],
                entity_class=EntityClass(row["entity_class"]),
                metadata=json.loads(row["metadata"] or "{}"),
            )
            for row in rows
        ]

    async def vector_candidates(self, query_vector: list[float], limit: int) -> list[str]:
        query = np.asarray(query_vector, dtype=np.float32)
        query_norm = float(np.linalg.norm(query))
        if limit <= 0 or query_norm == 0.0:
            return []

        async with self._connect() as db:
            cursor = await db.execute(_SELECT_EMBEDDINGS_SQL)
            rows = await cursor.fetchall()

        ids: list[str] = []
        vectors: list[np.ndarray] = []
        for row in rows:
            vector = _decode_embedding(row["embedding"])
            if vector is None or vector.shape != query.shape:
                logger.warning(
                    "embedding_dimension_mismatch",
                    document_id=row["id"],
                    expected=int(query.shape[0]),
                    actual=None if vector is None else int(vector.shape[0]),
                )
                continue
            ids.append(row["id"])
            vectors.append(vector)

        if not vectors:
            return []

        matrix = np.vstack(vectors)
        norms = np.linalg.norm(matrix, axis=1)
        with np.errstate(divide="ignore", invalid="ignore"):
            similarity = (matrix @ query) / (norms * query_norm)
        # Zero vectors have no direction; rank them last.
        distance = np.where(norms > 0, 1.0 - similarity, np.inf)

        ranked = sorted(zip(distance.tolist(), ids, strict=True))
        return [doc_id for dist, doc_id in ranked[:limit] if dist != float("inf")]

    async def lexical_candidates(self, query_text: str, limit: int) -> list[str]:
        match = _fts_query(query_text)
        if match is None or limit <= 0:
            return []
        async with self._connect() as db:
            cursor = await db.execute(_LEXICAL_SQL, (match, limit))
            rows = await cursor.fetchall()
        return [row["id"] for row in rows]

    async def counts(self) -> dict[str, int]:
        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT entity_class, COUNT(*) AS n FROM entities GROUP BY entity_class"
            )
            by_class = {row["entity_class"]: row["n"] for row in await cursor.fetchall()}
            cursor = await db.execute("SELECT COUNT(*) AS n FROM relationships")
            rel_row = await cursor.fetchone()
        return {
            "documents": by_class.get(EntityClass.DOCUMENT.value, 0),
            "concepts": by_class.get(EntityClass.CONCEPT.value, 0),
            "relationships": rel_row["n"] if rel_row is not None else 0,
        }
