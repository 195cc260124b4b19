"""Unit tests for GraphExecutor against a real temporary SQLite store."""

from __future__ import annotations

import json
from pathlib import Path

import aiosqlite
import pytest

from semantic_archive.models.graph import CommandAction, DocumentUpsert, GraphCommand
from semantic_archive.providers.graph.sqlite_graph_store import SQLiteGraphStore
from semantic_archive.services.graph_executor import GraphExecutor
from semantic_archive.utils.errors import CycleDetectedError, TransactionError


def _doc(doc_id: str = "doc-1") -> DocumentUpsert:
    return DocumentUpsert(
        id=doc_id,
        document_type="TechSpec",
        content="Redis cache notes",
        embedding=[1.0, 1.0, 0.0, 0.0],
        metadata={"title": "Redis"},
    )


class TestExecute:
    @pytest.mark.asyncio
    async def test_document_and_mentions(self, graph_store: SQLiteGraphStore) -> None:
        executor = GraphExecutor(graph_store)
        commands = [
            GraphCommand.entity("Redis", "Technology"),
            GraphCommand.relationship("doc-1", "Redis"),
            GraphCommand.entity("Sentinel", "Technology"),
            GraphCommand.relationship("doc-1", "Sentinel"),
        ]

        summary = await executor.execute(commands, _doc())

        assert summary.entities_inserted == 2
        assert summary.relationships_inserted == 2
        assert summary.skipped_commands == 0
        assert await graph_store.counts() == {"documents": 1, "concepts": 2, "relationships": 2}

    @pytest.mark.asyncio
    async def test_rerun_is_idempotent(self, graph_store: SQLiteGraphStore) -> None:
        executor = GraphExecutor(graph_store)
        commands = [
            GraphCommand.entity("Redis", "Technology"),
            GraphCommand.relationship("doc-1", "Redis"),
        ]
        await executor.execute(commands, _doc())
        summary = await executor.execute(commands, _doc())

        assert summary.entities_inserted == 0
        assert summary.relationships_inserted == 0
        assert await graph_store.counts() == {"documents": 1, "concepts": 1, "relationships": 1}

    @pytest.mark.asyncio
    async def test_missing_fields_are_skipped(self, graph_store: SQLiteGraphStore) -> None:
        executor = GraphExecutor(graph_store)
        commands = [
            GraphCommand(action=CommandAction.INSERT_ENTITY, payload={"type": "Technology"}),
            GraphCommand(action=CommandAction.INSERT_ENTITY, payload={"id": "Redis"}),
            GraphCommand(action=CommandAction.INSERT_RELATIONSHIP, payload={"source": "doc-1"}),
            GraphCommand(
                action=CommandAction.INSERT_RELATIONSHIP,
                payload={"source": "doc-1", "target": "Redis"},
            ),
        ]

        summary = await executor.execute(commands, _doc())

        assert summary.skipped_commands == 2
        assert summary.entities_inserted == 1
        assert summary.relationships_inserted == 1
        redis = await graph_store.get_entity("Redis")
        assert redis is not None
        assert redis.entity_type == "Unknown"
        neighbors = await graph_store.neighbors("doc-1")
        assert [n.relationship_class for n in neighbors] == ["MENTIONS"]


class TestMetadata:
    @pytest.mark.asyncio
    async def test_command_metadata_is_stored(
        self, graph_store: SQLiteGraphStore, tmp_path: Path
    ) -> None:
        executor = GraphExecutor(graph_store)
        commands = [
            GraphCommand(
                action=CommandAction.INSERT_ENTITY,
                payload={
                    "id": "Redis",
                    "type": "Technology",
                    "metadata": {"aliases": ["redis-server"]},
                },
            ),
            GraphCommand(
                action=CommandAction.INSERT_RELATIONSHIP,
                payload={
                    "source": "doc-1",
                    "target": "Redis",
                    "_class": "MENTIONS",
                    "metadata": {"section": "Setup"},
                },
            ),
        ]

        await executor.execute(commands, _doc())

        redis = await graph_store.get_entity("Redis")
        assert redis is not None
        assert redis.metadata == {"aliases": ["redis-server"]}
        async with aiosqlite.connect(tmp_path / "graph.db") as db:
            cursor = await db.execute(
                "SELECT metadata FROM relationships WHERE source = ? AND target = ?",
                ("doc-1", "Redis"),
            )
            (edge_metadata,) = await cursor.fetchone()
        assert json.loads(edge_metadata) == {"section": "Setup"}

    @pytest.mark.asyncio
    async def test_first_writer_keeps_metadata(self, graph_store: SQLiteGraphStore) -> None:
        executor = GraphExecutor(graph_store)
        first = GraphCommand(
            action=CommandAction.INSERT_ENTITY,
            payload={"id": "Redis", "type": "Technology", "metadata": {"source": "first"}},
        )
        second = GraphCommand(
            action=CommandAction.INSERT_ENTITY,
            payload={"id": "Redis", "type": "Database", "metadata": {"source": "second"}},
        )

        await executor.execute([first], _doc())
        await executor.execute([second], _doc())

        redis = await graph_store.get_entity("Redis")
        assert redis is not None
        assert redis.entity_type == "Technology"
        assert redis.metadata == {"source": "first"}

    @pytest.mark.asyncio
    async def test_non_object_metadata_is_ignored(self, graph_store: SQLiteGraphStore) -> None:
        executor = GraphExecutor(graph_store)
        command = GraphCommand(
            action=CommandAction.INSERT_ENTITY,
            payload={"id": "Redis", "type": "Technology", "metadata": "in-memory store"},
        )

        summary = await executor.execute([command], _doc())

        assert summary.entities_inserted == 1
        redis = await graph_store.get_entity("Redis")
        assert redis is not None
        assert redis.metadata == {}


class TestAtomicity:
    @pytest.mark.asyncio
    async def test_cycle_rolls_back_whole_batch(self, graph_store: SQLiteGraphStore) -> None:
        executor = GraphExecutor(graph_store)
        setup = [
            GraphCommand.entity("A", "Concept"),
            GraphCommand.entity("B", "Concept"),
            GraphCommand.entity("C", "Concept"),
            GraphCommand.relationship("A", "B", "DEPENDS_ON"),
            GraphCommand.relationship("B", "C", "DEPENDS_ON"),
        ]
        await executor.execute(setup, _doc("doc-setup"))
        before = await graph_store.counts()

        closing = [
            GraphCommand.entity("D", "Concept"),
            GraphCommand.relationship("doc-2", "D"),
            GraphCommand.relationship("C", "A", "DEPENDS_ON"),
        ]
        with pytest.raises(CycleDetectedError):
            await executor.execute(closing, _doc("doc-2"))

        assert await graph_store.counts() == before
        assert await graph_store.get_entity("doc-2") is None
        assert await graph_store.get_entity("D") is None

    @pytest.mark.asyncio
    async def test_cycle_within_one_batch(self, graph_store: SQLiteGraphStore) -> None:
        executor = GraphExecutor(graph_store)
        commands = [
            GraphCommand.entity("A", "Concept"),
            GraphCommand.entity("B", "Concept"),
            GraphCommand.relationship("A", "B"),
            GraphCommand.relationship("B", "A"),
        ]
        with pytest.raises(CycleDetectedError):
            await executor.execute(commands, _doc())
        assert await graph_store.counts() == {"documents": 0, "concepts": 0, "relationships": 0}

    @pytest.mark.asyncio
    async def test_self_loop_is_a_cycle(self, graph_store: SQLiteGraphStore) -> None:
        executor = GraphExecutor(graph_store)
        commands = [GraphCommand.entity("A", "Concept"), GraphCommand.relationship("A", "A")]
        with pytest.raises(CycleDetectedError):
            await executor.execute(commands, _doc())

    @pytest.mark.asyncio
    async def test_dangling_target_fails_batch(self, graph_store: SQLiteGraphStore) -> None:
        executor = GraphExecutor(graph_store)
        commands = [
            GraphCommand.entity("Redis", "Technology"),
            GraphCommand.relationship("doc-1", "Ghost"),
        ]
        with pytest.raises(TransactionError):
            await executor.execute(commands, _doc())
        assert await graph_store.counts() == {"documents": 0, "concepts": 0, "relationships": 0}
