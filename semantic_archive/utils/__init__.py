"""Utility modules for Semantic Archive.

- **errors** -- Domain-specific exception hierarchy rooted at
  SemanticArchiveError; each pipeline stage raises its own subclass so the
  job queue can tell transient failures from content failures.
- **concurrency** -- sliding-window rate limiter that caps how many
  ingestion jobs may start per unit time.
- **logging** -- structlog setup with a dual-renderer pattern: coloured
  console output in development, structured JSON in production.
"""

from semantic_archive.utils.concurrency import RateLimit, RateLimiter
from semantic_archive.utils.errors import (
    ArchivalError,
    ClassificationError,
    ConfigurationError,
    CycleDetectedError,
    EmbeddingError,
    ExtractionError,
    JobFailedError,
    LLMError,
    PipelineError,
    SemanticArchiveError,
    TransactionError,
    UnsupportedFormatError,
    ValidationRejectedError,
)
from semantic_archive.utils.logging import configure_logging, get_logger

__all__ = [
    "ArchivalError",
    "ClassificationError",
    "ConfigurationError",
    "CycleDetectedError",
    "EmbeddingError",
    "ExtractionError",
    "JobFailedError",
    "LLMError",
    "PipelineError",
    "RateLimit",
    "RateLimiter",
    "SemanticArchiveError",
    "TransactionError",
    "UnsupportedFormatError",
    "ValidationRejectedError",
    "configure_logging",
    "get_logger",
]
