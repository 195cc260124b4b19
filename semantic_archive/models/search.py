"""Hybrid search result models."""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class MatchType(str, Enum):  # noqa: UP042
    """Which rankings a fused result appeared in."""

    BOTH = "both"
    SEMANTIC = "semantic"
    LEXICAL = "lexical"


class SearchResult(BaseModel):
    """One document returned by hybrid search, with its fused RRF score."""

    model_config = ConfigDict(frozen=True)

    document_id: str
    content: str = ""
    metadata: dict[str, Any] = Field(default_factory=dict)
    score: float = Field(ge=0.0)
    match_type: MatchType
    vector_rank: int | None = Field(default=None, ge=1)
    lexical_rank: int | None = Field(default=None, ge=1)

    @property
    def title(self) -> str:
        return str(self.metadata.get("title") or "Untitled")
