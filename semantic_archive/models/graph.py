"""Knowledge-graph data models.

Defines Pydantic v2 models for entities, relationships, the mutation
commands produced by the command-generation stage, and the one-hop
neighbour rows returned by relationship lookups.  All models are frozen.

Architecture note:
    The graph has two entity classes.  A **Document** is one ingested file:
    it carries the LLM summary as ``content`` and an embedding for vector
    search, and documents are mutable (re-ingesting the same path updates
    the row).  A **Concept** is a named thing a document mentions; concepts
    are first-writer-wins.  Documents point at concepts with ``MENTIONS``
    relationships, and the relationship graph must stay acyclic.
"""

from __future__ import annotations

import hashlib
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_RELATIONSHIP_CLASS = "MENTIONS"


def document_id_for(file_path: str) -> str:
    """Return the stable document id for a source path (MD5 hex digest)."""
    return hashlib.md5(file_path.encode("utf-8")).hexdigest()  # noqa: S324


class EntityClass(str, Enum):  # noqa: UP042
    """Partition of graph entities."""

    DOCUMENT = "Document"
    CONCEPT = "Concept"


class CommandAction(str, Enum):  # noqa: UP042
    """Mutation verbs the command-generation stage may emit."""

    INSERT_ENTITY = "INSERT_ENTITY"
    INSERT_RELATIONSHIP = "INSERT_RELATIONSHIP"


class Entity(BaseModel):
    """A node in the knowledge graph."""

    model_config = ConfigDict(frozen=True)

    id: str
    entity_class: EntityClass
    entity_type: str
    content: str | None = None
    embedding: list[float] | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=lambda: datetime.now(tz=timezone.utc))  # noqa: UP017


class Relationship(BaseModel):
    """A directed, classed edge between two entities."""

    model_config = ConfigDict(frozen=True)

    source: str
    target: str
    relationship_class: str = DEFAULT_RELATIONSHIP_CLASS
    metadata: dict[str, Any] = Field(default_factory=dict)


class GraphCommand(BaseModel):
    """One mutation produced by the command-generation stage.

    The payload stays a loose dict: it comes straight from the model, and
    the graph executor decides at execution time whether it carries the
    required fields.
    """

    model_config = ConfigDict(frozen=True)

    action: CommandAction
    payload: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def entity(cls, entity_id: str, entity_type: str) -> GraphCommand:
        return cls(
            action=CommandAction.INSERT_ENTITY,
            payload={"id": entity_id, "type": entity_type, "_class": EntityClass.CONCEPT.value},
        )

    @classmethod
    def relationship(
        cls,
        source: str,
        target: str,
        relationship_class: str = DEFAULT_RELATIONSHIP_CLASS,
    ) -> GraphCommand:
        return cls(
            action=CommandAction.INSERT_RELATIONSHIP,
            payload={"source": source, "target": target, "_class": relationship_class},
        )


class DocumentUpsert(BaseModel):
    """The document row written (or overwritten) by one ingestion run."""

    model_config = ConfigDict(frozen=True)

    id: str
    document_type: str
    content: str
    embedding: list[float] | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class ExecutionSummary(BaseModel):
    """Counts reported by the graph executor after a committed batch."""

    model_config = ConfigDict(frozen=True)

    document_id: str
    entities_inserted: int = 0
    relationships_inserted: int = 0
    skipped_commands: int = 0


class Neighbor(BaseModel):
    """One edge touching an entity, joined with the entity on the other end."""

    model_config = ConfigDict(frozen=True)

    relationship_class: str
    # "outgoing" when the queried entity is the edge source.
    direction: str
    entity_id: str
    entity_type: str
    entity_class: EntityClass
    metadata: dict[str, Any] = Field(default_factory=dict)
