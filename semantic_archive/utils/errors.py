"""Custom exception hierarchy for Semantic Archive.

All application exceptions inherit from :class:`SemanticArchiveError`, which
carries an optional ``provider_name`` so error handlers can identify which
external service (e.g. "ollama", "pdftotext", "sqlite") caused the failure.

The hierarchy is organized by pipeline stage:

    SemanticArchiveError  (base -- catch-all for any semantic-archive error)
    +-- ExtractionError            (stage 1: file-to-text extraction)
    |   +-- UnsupportedFormatError (no extractor for the file extension)
    +-- ClassificationError        (stage 2/4: malformed or schema-failing LLM output)
    +-- ValidationRejectedError    (stage 3: classification rejected by the checker)
    +-- LLMError                   (transport failure of any LLM call)
    +-- EmbeddingError             (embedding call failure)
    +-- TransactionError           (graph write failed, full rollback)
    |   +-- CycleDetectedError     (edge would close a directed cycle)
    +-- ArchivalError              (ZIP append or original delete failed)
    +-- PipelineError              (orchestration failure)
    +-- JobFailedError             (a queued job exhausted its attempts)
    +-- ConfigurationError         (startup / missing config)

Content errors (``is_content_error``) are caused by the document or the
model's reading of it.  They count against a job's attempts like any other
failure, but retrying them will not help, so the job queue flags them for
operator attention.
"""

from __future__ import annotations


class SemanticArchiveError(Exception):
    """Base exception for all Semantic Archive errors.

    Every subclass carries a human-readable ``message`` and an optional
    ``provider_name`` identifying which external service triggered the
    error.  The ``__str__`` method prefixes the provider name in brackets
    for structured log output, e.g. ``[ollama] connection refused``.
    """

    #: True when retrying the same input cannot succeed.
    is_content_error: bool = False

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    @property
    def kind(self) -> str:
        """Short error-kind label used in log events."""
        return type(self).__name__

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Stage 1: Extraction errors
# ---------------------------------------------------------------------------

class ExtractionError(SemanticArchiveError):
    """Raised when text extraction fails (subprocess failure, empty result)."""

    def __init__(
        self,
        message: str = "Text extraction failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class UnsupportedFormatError(ExtractionError):
    """Raised when no extractor handles the file's extension."""

    def __init__(
        self,
        message: str = "Unsupported file format",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Stages 2-4: LLM output errors
# ---------------------------------------------------------------------------

class ClassificationError(SemanticArchiveError):
    """Raised when an LLM response is malformed or fails schema validation."""

    is_content_error = True

    def __init__(
        self,
        message: str = "Classification failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ValidationRejectedError(SemanticArchiveError):
    """Raised when the validation gate rejects a classification.

    The ``reasoning`` returned by the checker model is kept so operators
    can see which entities were judged fabricated.
    """

    is_content_error = True

    def __init__(
        self,
        message: str = "Classification validation failed",
        provider_name: str | None = None,
        reasoning: str = "",
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
        self._reasoning = reasoning

    @property
    def reasoning(self) -> str:
        return self._reasoning


class LLMError(SemanticArchiveError):
    """Raised when an LLM API call fails at the transport level."""

    def __init__(
        self,
        message: str = "LLM API call failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class EmbeddingError(SemanticArchiveError):
    """Raised when an embedding call fails or returns an unusable vector."""

    def __init__(
        self,
        message: str = "Embedding generation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Graph store errors
# ---------------------------------------------------------------------------

class TransactionError(SemanticArchiveError):
    """Raised when a graph transaction fails and is rolled back."""

    def __init__(
        self,
        message: str = "Graph transaction failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class CycleDetectedError(TransactionError):
    """Raised when a relationship insert would close a directed cycle."""

    def __init__(
        self,
        message: str = "Relationship would create a cycle",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Archival
# ---------------------------------------------------------------------------

class ArchivalError(SemanticArchiveError):
    """Raised when archiving a processed file or deleting the original fails."""

    def __init__(
        self,
        message: str = "Archival failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Orchestration / configuration errors
# ---------------------------------------------------------------------------

class PipelineError(SemanticArchiveError):
    """Raised when pipeline orchestration fails."""

    def __init__(
        self,
        message: str = "Pipeline orchestration failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class JobFailedError(SemanticArchiveError):
    """Raised by the synchronous ``process()`` entry point when its job fails.

    The original stage exception is available as ``__cause__``.
    """

    def __init__(
        self,
        message: str = "Job failed",
        provider_name: str | None = None,
        job_id: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
        self._job_id = job_id

    @property
    def job_id(self) -> str | None:
        return self._job_id


class ConfigurationError(SemanticArchiveError):
    """Raised when configuration is invalid or missing at startup."""

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
