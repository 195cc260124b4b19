"""Shared pytest fixtures for the Semantic Archive test suite."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio

from semantic_archive.config.settings import Settings
from semantic_archive.interfaces.embedding_provider import IEmbeddingProvider
from semantic_archive.interfaces.llm_provider import ILLMProvider
from semantic_archive.models.classification import Classification
from semantic_archive.providers.graph.sqlite_graph_store import SQLiteGraphStore

# Tiny embedding space used throughout the tests: one dimension per keyword.
KEYWORDS: tuple[str, ...] = ("redis", "cache", "aria", "music")


def keyword_vector(text: str) -> list[float]:
    """Deterministic 4-d embedding: keyword counts, plus a floor so no
    vector is all zeros."""
    lowered = text.lower()
    return [float(lowered.count(word)) + 0.01 for word in KEYWORDS]


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings isolated under a temporary directory."""
    return Settings(
        _env_file=None,
        db_path=str(tmp_path / "graph.db"),
        ingest_path=str(tmp_path / "ingest"),
        archive_path=str(tmp_path / "archive" / "archive.zip"),
        embedding_dim=len(KEYWORDS),
        backoff_base=0.0,
    )


# ---------------------------------------------------------------------------
# Mock providers
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_llm_provider() -> ILLMProvider:
    """Mock ILLMProvider.

    Override with ``mock_llm_provider.complete.return_value = "..."`` or
    ``mock_llm_provider.complete.side_effect = [...]`` for specific tests.
    """
    mock = MagicMock(spec=ILLMProvider)
    mock.get_provider_name.return_value = "mock-llm"
    mock.is_available.return_value = True
    mock.validate_credentials = AsyncMock(return_value=True)
    mock.complete = AsyncMock(return_value='{"result": "ok"}')
    return mock


@pytest.fixture
def mock_embedding_provider() -> IEmbeddingProvider:
    """Mock IEmbeddingProvider producing keyword-count vectors."""
    mock = MagicMock(spec=IEmbeddingProvider)
    mock.get_provider_name.return_value = "mock-embedding"
    mock.get_dimension.return_value = len(KEYWORDS)
    mock.embed_single = AsyncMock(side_effect=keyword_vector)
    mock.embed = AsyncMock(side_effect=lambda texts: [keyword_vector(t) for t in texts])
    return mock


# ---------------------------------------------------------------------------
# Graph store
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def graph_store(tmp_path: Path) -> SQLiteGraphStore:
    """Initialised store on a temp database with 4-d embeddings."""
    store = SQLiteGraphStore(db_path=tmp_path / "graph.db", embedding_dim=len(KEYWORDS))
    await store.initialize()
    return store


# ---------------------------------------------------------------------------
# Sample LLM payloads
# ---------------------------------------------------------------------------


@pytest.fixture
def redis_classification_payload() -> dict[str, Any]:
    return {
        "title": "Redis Cluster Notes",
        "documentType": "TechSpec",
        "summary": "Notes on running Redis as a cache cluster with failover.",
        "entities": [
            {"name": "Redis", "type": "Technology"},
            {"name": "Sentinel", "type": "Technology"},
        ],
    }


@pytest.fixture
def redis_classification(redis_classification_payload: dict[str, Any]) -> Classification:
    return Classification.model_validate(redis_classification_payload)


def commands_response(document_id: str, entities: list[tuple[str, str]]) -> str:
    """The JSON a well-behaved command generator returns for *entities*."""
    commands: list[dict[str, Any]] = []
    for name, entity_type in entities:
        commands.append(
            {
                "action": "INSERT_ENTITY",
                "payload": {"id": name, "type": entity_type, "_class": "Concept"},
            }
        )
        commands.append(
            {
                "action": "INSERT_RELATIONSHIP",
                "payload": {"source": document_id, "target": name, "_class": "MENTIONS"},
            }
        )
    return json.dumps({"databaseCommands": commands})
