"""Typed results of the classification and validation stages.

The LLM returns loosely-typed JSON.  These models are the boundary between
that JSON and the rest of the pipeline: a response is only accepted once it
validates against them, and the JSON-schema sent to the model is derived
from the same definitions so the two never drift apart.

JSON keys use the camelCase names the prompts ask for (``documentType``,
``isValid``); Python attributes are snake_case.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class DocumentType(str, Enum):  # noqa: UP042
    """Closed set of document categories the classifier may choose."""

    RESEARCH_REPORT = "ResearchReport"
    COMPLETION_DOC = "CompletionDoc"
    HANDOFF_DOC = "HandoffDoc"
    TECH_SPEC = "TechSpec"
    TUTORIAL = "Tutorial"
    OTHER = "Other"


class ExtractedConcept(BaseModel):
    """A named entity the classifier found in the document."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    name: str = Field(min_length=1)
    type: str = Field(min_length=1)


class Classification(BaseModel):
    """Structured output of the classification stage."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    title: str
    document_type: DocumentType = Field(alias="documentType")
    summary: str = Field(min_length=1)
    entities: list[ExtractedConcept]

    def to_prompt_json(self) -> dict[str, Any]:
        """Serialise with the camelCase keys used in prompts."""
        return self.model_dump(mode="json", by_alias=True)


class ValidationVerdict(BaseModel):
    """Structured output of the optional validation stage."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    is_valid: bool = Field(alias="isValid")
    reasoning: str = ""


# ---------------------------------------------------------------------------
# JSON schemas handed to the model (structured-output constraint).
# ---------------------------------------------------------------------------

CLASSIFICATION_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "title": {"type": "string"},
        "documentType": {
            "type": "string",
            "enum": [member.value for member in DocumentType],
        },
        "summary": {"type": "string", "minLength": 1},
        "entities": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "name": {"type": "string"},
                    "type": {"type": "string"},
                },
                "required": ["name", "type"],
            },
        },
    },
    "required": ["title", "documentType", "summary", "entities"],
}

VALIDATION_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "isValid": {"type": "boolean"},
        "reasoning": {"type": "string"},
    },
    "required": ["isValid", "reasoning"],
}

COMMANDS_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "databaseCommands": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "action": {
                        "type": "string",
                        "enum": ["INSERT_ENTITY", "INSERT_RELATIONSHIP"],
                    },
                    "payload": {"type": "object"},
                },
                "required": ["action", "payload"],
            },
        },
    },
    "required": ["databaseCommands"],
}
