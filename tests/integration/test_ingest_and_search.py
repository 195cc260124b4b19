"""Integration tests: ingest files through the real pipeline into a real
SQLite graph, then query it through HybridSearchService.

Only the LLM and the embedding model are faked.  The LLM mock answers in
call order (classify, [validate,] generate commands) for each document.
"""

from __future__ import annotations

import json
import zipfile
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock

import pytest

from semantic_archive import main as main_module
from semantic_archive.config.settings import Settings
from semantic_archive.models.graph import EntityClass, document_id_for
from semantic_archive.models.search import MatchType
from semantic_archive.pipeline.orchestrator import IngestionPipeline
from semantic_archive.providers.graph.sqlite_graph_store import SQLiteGraphStore
from semantic_archive.utils.errors import ValidationRejectedError

from conftest import commands_response

_ARIA_PAYLOAD: dict[str, Any] = {
    "title": "Concert Programme",
    "documentType": "Other",
    "summary": "Programme for an evening of opera: each aria and the music behind it.",
    "entities": [{"name": "Puccini", "type": "Person"}],
}


def _write(directory: Path, name: str, text: str) -> str:
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / name
    path.write_text(text, encoding="utf-8")
    return str(path)


def _pipeline(
    settings: Settings,
    graph_store: SQLiteGraphStore,
    llm: MagicMock,
    embedder: MagicMock,
    **overrides: Any,
) -> IngestionPipeline:
    return main_module.build_pipeline(
        settings.model_copy(update=overrides),
        graph_store=graph_store,
        llm_provider=llm,
        embedding_provider=embedder,
    )


class TestIngestThenSearch:
    @pytest.mark.asyncio
    async def test_search_ranks_matching_document_first(
        self,
        settings: Settings,
        tmp_path: Path,
        graph_store: SQLiteGraphStore,
        mock_llm_provider: MagicMock,
        mock_embedding_provider: MagicMock,
        redis_classification_payload: dict[str, Any],
    ) -> None:
        inbox = tmp_path / "ingest"
        redis_path = _write(inbox, "redis-cluster-notes.md", "Redis with Sentinel failover.")
        aria_path = _write(inbox, "concert-programme.md", "Nessun dorma, Puccini.")
        redis_id = document_id_for(redis_path)
        aria_id = document_id_for(aria_path)
        mock_llm_provider.complete.side_effect = [
            json.dumps(redis_classification_payload),
            commands_response(redis_id, [("Redis", "Technology"), ("Sentinel", "Technology")]),
            json.dumps(_ARIA_PAYLOAD),
            commands_response(aria_id, [("Puccini", "Person")]),
        ]
        pipeline = _pipeline(
            settings,
            graph_store,
            mock_llm_provider,
            mock_embedding_provider,
            enable_archival=False,
        )

        first = await pipeline.run(redis_path)
        second = await pipeline.run(aria_path)

        assert first.document_id == redis_id
        assert first.relationships_inserted == 2
        assert second.document_id == aria_id
        assert await graph_store.counts() == {
            "documents": 2,
            "concepts": 3,
            "relationships": 3,
        }

        search = main_module.build_search_service(
            settings, graph_store=graph_store, embedding_provider=mock_embedding_provider
        )
        results = await search.search("redis", limit=5)

        assert results[0].document_id == redis_id
        assert results[0].title == "Redis Cluster Notes"
        assert results[0].match_type is MatchType.BOTH
        assert [r.score for r in results] == sorted((r.score for r in results), reverse=True)

        neighbors = await search.relationships(redis_id)
        assert {(n.relationship_class, n.direction, n.entity_id) for n in neighbors} == {
            ("MENTIONS", "outgoing", "Redis"),
            ("MENTIONS", "outgoing", "Sentinel"),
        }
        concept_side = await search.relationships("Redis")
        assert [(n.direction, n.entity_id, n.entity_class) for n in concept_side] == [
            ("incoming", redis_id, EntityClass.DOCUMENT)
        ]

    @pytest.mark.asyncio
    async def test_reingesting_same_path_is_idempotent(
        self,
        settings: Settings,
        tmp_path: Path,
        graph_store: SQLiteGraphStore,
        mock_llm_provider: MagicMock,
        mock_embedding_provider: MagicMock,
        redis_classification_payload: dict[str, Any],
    ) -> None:
        path = _write(tmp_path / "ingest", "redis-idempotent.md", "Redis notes")
        doc_id = document_id_for(path)
        classify = json.dumps(redis_classification_payload)
        commands = commands_response(doc_id, [("Redis", "Technology")])
        mock_llm_provider.complete.side_effect = [classify, commands, classify, commands]
        pipeline = _pipeline(
            settings,
            graph_store,
            mock_llm_provider,
            mock_embedding_provider,
            enable_archival=False,
        )

        await pipeline.run(path)
        again = await pipeline.run(path)

        assert again.document_id == doc_id
        assert again.relationships_inserted == 0
        assert await graph_store.counts() == {
            "documents": 1,
            "concepts": 1,
            "relationships": 1,
        }


class TestOptionalStages:
    @pytest.mark.asyncio
    async def test_rejected_classification_writes_nothing(
        self,
        settings: Settings,
        tmp_path: Path,
        graph_store: SQLiteGraphStore,
        mock_llm_provider: MagicMock,
        mock_embedding_provider: MagicMock,
        redis_classification_payload: dict[str, Any],
    ) -> None:
        path = _write(tmp_path / "ingest", "redis-rejected.md", "Unrelated text")
        mock_llm_provider.complete.side_effect = [
            json.dumps(redis_classification_payload),
            json.dumps({"isValid": False, "reasoning": "Redis is never mentioned."}),
        ]
        pipeline = _pipeline(
            settings,
            graph_store,
            mock_llm_provider,
            mock_embedding_provider,
            check_validation=True,
            enable_archival=True,
        )

        with pytest.raises(ValidationRejectedError):
            await pipeline.run(path)

        assert await graph_store.counts() == {
            "documents": 0,
            "concepts": 0,
            "relationships": 0,
        }
        assert Path(path).exists()
        assert mock_llm_provider.complete.await_count == 2

    @pytest.mark.asyncio
    async def test_archival_moves_source_into_zip(
        self,
        settings: Settings,
        tmp_path: Path,
        graph_store: SQLiteGraphStore,
        mock_llm_provider: MagicMock,
        mock_embedding_provider: MagicMock,
        redis_classification_payload: dict[str, Any],
    ) -> None:
        path = _write(tmp_path / "ingest", "redis-archived.md", "Redis notes")
        doc_id = document_id_for(path)
        mock_llm_provider.complete.side_effect = [
            json.dumps(redis_classification_payload),
            commands_response(doc_id, [("Redis", "Technology")]),
        ]
        pipeline = _pipeline(
            settings,
            graph_store,
            mock_llm_provider,
            mock_embedding_provider,
            enable_archival=True,
        )

        result = await pipeline.run(path)

        assert result.archived is True
        assert not Path(path).exists()
        with zipfile.ZipFile(settings.archive_path) as archive:
            assert archive.read("redis-archived.md") == b"Redis notes"
        document = await graph_store.get_entity(doc_id)
        assert document is not None
        assert document.metadata["originalPath"] == path
