"""Semantic Archive domain models -- re-exports all public model classes.

The models are organized by concern:
    - classification.py -- LLM stage outputs and the JSON schemas sent to the model
    - graph.py          -- entities, relationships, mutation commands, neighbours
    - job.py            -- ingestion job lifecycle and results
    - search.py         -- hybrid search results
"""

from __future__ import annotations

from semantic_archive.models.classification import (
    CLASSIFICATION_SCHEMA,
    COMMANDS_SCHEMA,
    VALIDATION_SCHEMA,
    Classification,
    DocumentType,
    ExtractedConcept,
    ValidationVerdict,
)
from semantic_archive.models.graph import (
    DEFAULT_RELATIONSHIP_CLASS,
    CommandAction,
    DocumentUpsert,
    Entity,
    EntityClass,
    ExecutionSummary,
    GraphCommand,
    Neighbor,
    Relationship,
    document_id_for,
)
from semantic_archive.models.job import IngestionResult, IngestionStage, JobSnapshot, JobState
from semantic_archive.models.search import MatchType, SearchResult

__all__ = [
    "CLASSIFICATION_SCHEMA",
    "COMMANDS_SCHEMA",
    "DEFAULT_RELATIONSHIP_CLASS",
    "VALIDATION_SCHEMA",
    "Classification",
    "CommandAction",
    "DocumentType",
    "DocumentUpsert",
    "Entity",
    "EntityClass",
    "ExecutionSummary",
    "ExtractedConcept",
    "GraphCommand",
    "IngestionResult",
    "IngestionStage",
    "JobSnapshot",
    "JobState",
    "MatchType",
    "Neighbor",
    "Relationship",
    "SearchResult",
    "ValidationVerdict",
    "document_id_for",
]
