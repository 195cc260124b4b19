"""Abstract base classes for the knowledge-graph store.

The store holds two tables' worth of state: entities (documents and
concepts) and directed relationships between them.  All writes happen
inside a :class:`GraphTransaction` obtained from
:meth:`IGraphStore.transaction`; leaving the ``async with`` block normally
commits, leaving it with an exception rolls every write back.

Write-time constraints enforced by the store itself:

- a relationship's endpoints must both exist (``TransactionError``);
- a relationship may not point at its own source (``TransactionError``);
- duplicate concepts and duplicate relationships are silent no-ops.

Acyclicity is checked by the caller through :meth:`GraphTransaction.reaches`
before each relationship insert.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import AbstractAsyncContextManager
from typing import Any

from semantic_archive.models.graph import DocumentUpsert, Entity, Neighbor, Relationship


class GraphTransaction(ABC):
    """Write handle bound to one open store transaction."""

    @abstractmethod
    async def upsert_document(self, document: DocumentUpsert) -> None:
        """Insert a Document entity, or overwrite its type, content,
        embedding and metadata when the id already exists."""

    @abstractmethod
    async def insert_concept(
        self,
        entity_id: str,
        entity_type: str,
        metadata: dict[str, Any] | None = None,
    ) -> bool:
        """Insert a Concept entity.

        Returns
        -------
        bool
            ``True`` when a row was written, ``False`` when the id already
            existed and the insert was a no-op.
        """

    @abstractmethod
    async def insert_relationship(self, relationship: Relationship) -> bool:
        """Insert a directed edge.

        Returns
        -------
        bool
            ``True`` when a row was written, ``False`` when the same
            (source, target, class) edge already existed.

        Raises
        ------
        semantic_archive.utils.errors.TransactionError
            If either endpoint is missing or the edge is a self-loop.
        """

    @abstractmethod
    async def reaches(self, start: str, goal: str) -> bool:
        """Return ``True`` if *goal* is reachable from *start* along outgoing
        edges, including edges written earlier in this transaction.

        ``reaches(x, x)`` is ``True``.
        """


# Concrete implementation: SQLiteGraphStore (semantic_archive/providers/graph/)
class IGraphStore(ABC):
    """Contract for knowledge-graph persistence and candidate retrieval."""

    @abstractmethod
    async def initialize(self, reset: bool = False) -> None:
        """Create the schema if missing.

        Parameters
        ----------
        reset:
            Drop every table first, discarding all stored entities and
            relationships.
        """

    @abstractmethod
    def transaction(self) -> AbstractAsyncContextManager[GraphTransaction]:
        """Open a write transaction.

        Raises
        ------
        semantic_archive.utils.errors.TransactionError
            On commit failure or any database error inside the block.  The
            transaction is rolled back before the error propagates.
        """

    @abstractmethod
    async def get_entity(self, entity_id: str) -> Entity | None:
        """Return the entity with *entity_id*, or ``None``."""

    @abstractmethod
    async def get_documents(self, document_ids: list[str]) -> dict[str, Entity]:
        """Return Document entities keyed by id; unknown ids are omitted."""

    @abstractmethod
    async def neighbors(self, entity_id: str) -> list[Neighbor]:
        """Return every edge touching *entity_id* in either direction, joined
        with the entity on the other end."""

    @abstractmethod
    async def vector_candidates(self, query_vector: list[float], limit: int) -> list[str]:
        """Return up to *limit* Document ids ordered by cosine distance to
        *query_vector*, nearest first.  Documents without an embedding are
        never returned."""

    @abstractmethod
    async def lexical_candidates(self, query_text: str, limit: int) -> list[str]:
        """Return up to *limit* Document ids whose content or type contains
        every term of *query_text*, best full-text rank first."""

    @abstractmethod
    async def counts(self) -> dict[str, int]:
        """Return row counts: ``documents``, ``concepts``, ``relationships``."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this store."""
