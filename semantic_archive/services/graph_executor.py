"""Transactional application of graph commands.

One call to :meth:`GraphExecutor.execute` is one store transaction: the
document upsert and every command in the batch either all commit or all
roll back.

Per-command rules:

- ``INSERT_ENTITY`` without an ``id`` is skipped with a warning.  The class
  is always ``Concept``; a missing ``type`` becomes ``Unknown``.  Existing
  ids are left untouched, type and metadata included.
- ``INSERT_RELATIONSHIP`` without a ``source`` or ``target`` is skipped with
  a warning.  A missing ``_class`` becomes ``MENTIONS``.  Existing
  (source, target, class) triples are left untouched.
- A payload's ``metadata`` is stored with the concept or edge when it is a
  JSON object and ignored otherwise.
- Before each relationship insert the executor asks whether ``target``
  already reaches ``source``.  If it does, the edge would close a cycle and
  the whole batch fails with :class:`CycleDetectedError`.  The traversal
  runs inside the open transaction, so it sees edges written earlier in the
  same batch.
"""

from __future__ import annotations

from typing import Any

from semantic_archive.interfaces.graph_store import GraphTransaction, IGraphStore
from semantic_archive.models.graph import (
    DEFAULT_RELATIONSHIP_CLASS,
    CommandAction,
    DocumentUpsert,
    ExecutionSummary,
    GraphCommand,
    Relationship,
)
from semantic_archive.utils.errors import CycleDetectedError, TransactionError
from semantic_archive.utils.logging import get_logger

logger = get_logger(__name__)

_UNKNOWN_TYPE = "Unknown"


def _field(payload: dict[str, Any], key: str) -> str:
    value = payload.get(key)
    if value is None:
        return ""
    return str(value).strip()


def _metadata(payload: dict[str, Any]) -> dict[str, Any]:
    value = payload.get("metadata")
    return dict(value) if isinstance(value, dict) else {}


class GraphExecutor:
    """Applies a command batch and the document upsert atomically."""

    def __init__(self, graph_store: IGraphStore) -> None:
        self._store = graph_store

    async def execute(
        self,
        commands: list[GraphCommand],
        document: DocumentUpsert,
    ) -> ExecutionSummary:
        """Upsert *document* and apply *commands* in one transaction.

        Returns
        -------
        ExecutionSummary
            How many concepts and relationships were actually written, and
            how many commands were skipped for missing fields.

        Raises
        ------
        CycleDetectedError
            If a relationship would close a directed cycle (self-loops
            included).  Nothing from the batch is kept.
        TransactionError
            If a relationship references a missing entity, or on any store
            failure.  Nothing from the batch is kept.
        """
        entities_inserted = 0
        relationships_inserted = 0
        skipped = 0

        try:
            async with self._store.transaction() as tx:
                await tx.upsert_document(document)
                for index, command in enumerate(commands):
                    if command.action is CommandAction.INSERT_ENTITY:
                        written = await self._insert_entity(tx, command.payload, index)
                        if written is None:
                            skipped += 1
                        elif written:
                            entities_inserted += 1
                    else:
                        written = await self._insert_relationship(tx, command.payload, index)
                        if written is None:
                            skipped += 1
                        elif written:
                            relationships_inserted += 1
        except TransactionError as exc:
            logger.error(
                "graph_batch_rolled_back",
                document_id=document.id,
                commands=len(commands),
                error=str(exc),
                error_kind=exc.kind,
            )
            raise

        summary = ExecutionSummary(
            document_id=document.id,
            entities_inserted=entities_inserted,
            relationships_inserted=relationships_inserted,
            skipped_commands=skipped,
        )
        logger.info(
            "graph_batch_committed",
            document_id=document.id,
            entities_inserted=entities_inserted,
            relationships_inserted=relationships_inserted,
            skipped=skipped,
        )
        return summary

    # -- Commands ------------------------------------------------------------

    @staticmethod
    async def _insert_entity(
        tx: GraphTransaction,
        payload: dict[str, Any],
        index: int,
    ) -> bool | None:
        entity_id = _field(payload, "id")
        if not entity_id:
            logger.warning("entity_command_skipped", index=index, reason="missing id")
            return None
        entity_type = _field(payload, "type") or _UNKNOWN_TYPE
        return await tx.insert_concept(entity_id, entity_type, _metadata(payload))

    @staticmethod
    async def _insert_relationship(
        tx: GraphTransaction,
        payload: dict[str, Any],
        index: int,
    ) -> bool | None:
        source = _field(payload, "source")
        target = _field(payload, "target")
        if not source or not target:
            logger.warning(
                "relationship_command_skipped",
                index=index,
                reason="missing source or target",
            )
            return None
        relationship_class = _field(payload, "_class") or DEFAULT_RELATIONSHIP_CLASS

        if await tx.reaches(target, source):
            raise CycleDetectedError(
                message=f"Relationship {source} -> {target} would create a cycle",
                provider_name="graph-executor",
            )
        return await tx.insert_relationship(
            Relationship(
                source=source,
                target=target,
                relationship_class=relationship_class,
                metadata=_metadata(payload),
            )
        )
