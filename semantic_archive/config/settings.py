"""Application settings loaded from environment variables via pydantic-settings.

# ─── HOW SETTINGS WORK ────────────────────────────────────────────────
#
# Settings are read from (highest priority first):
#
#   1. Constructor keyword arguments (tests, YAML loader)
#   2. Environment variables  -- e.g. SEMANTIC_ARCHIVE_DB_PATH=/data/graph.db
#   3. .env file in the working directory
#   4. The defaults below
#
# One Settings instance is built at process start (see
# semantic_archive.main) and passed into every component.  Nothing in
# the package reads configuration from module-level globals.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

from typing import Annotated

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

_DEFAULT_EXTENSIONS: tuple[str, ...] = (
    ".pdf", ".docx", ".txt", ".md", ".markdown",
    ".idea", ".gemini", ".research",
    ".py", ".js", ".sh", ".json", ".yaml", ".yml",
)


class Settings(BaseSettings):
    """Semantic Archive settings.

    Environment variables (prefix ``SEMANTIC_ARCHIVE_``) override defaults.
    """

    model_config = SettingsConfigDict(
        env_prefix="SEMANTIC_ARCHIVE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # === Ollama ===
    ollama_base_url: str = "http://127.0.0.1:11434"
    classifier_model: str = "glm-4.7-flash:q4_K_M"
    checker_model: str = "glm-4.7-flash:q4_K_M"
    function_caller_model: str = "qwen3-coder:latest"
    embedding_model: str = "qwen3-embedding:8b"
    embedding_dim: int = Field(default=4096, ge=1)

    # === Storage ===
    db_path: str = "data/semantic_archive.db"

    # === Paths ===
    ingest_path: str = "data/ingest"
    archive_path: str = "data/archive/archive.zip"

    # === Pipeline ===
    max_retries: int = Field(default=3, ge=1)
    backoff_base: float = Field(default=2.0, ge=0.0, description="Seconds before the first retry.")
    # Off by default: the checker rejected too many legitimate inferences.
    check_validation: bool = False
    enable_archival: bool = True
    classify_char_limit: int = Field(default=8000, ge=1)
    validate_char_limit: int = Field(default=4000, ge=1)

    # === Worker pool ===
    concurrency: int = Field(default=2, ge=1)
    rate_limit_max: int = Field(default=10, ge=1)
    rate_limit_window: float = Field(default=60.0, gt=0.0)

    # === Search ===
    search_candidates: int = Field(default=50, ge=1)
    rrf_k: int = Field(default=60, ge=1)

    # === File discovery ===
    supported_extensions: Annotated[tuple[str, ...], NoDecode] = _DEFAULT_EXTENSIONS
    watch_stability_threshold: float = Field(default=2.0, ge=0.0)

    # === App ===
    app_env: str = "development"
    log_level: str = "INFO"

    @field_validator("supported_extensions", mode="before")
    @classmethod
    def _split_extensions(cls, value: object) -> object:
        # Allow a comma-separated string from the environment.
        if isinstance(value, str):
            return tuple(part.strip().lower() for part in value.split(",") if part.strip())
        return value

    def is_supported(self, extension: str) -> bool:
        """Return True when files with *extension* should be ingested.

        Files without an extension are accepted and read as plain text.
        """
        ext = extension.lower()
        return ext == "" or ext in self.supported_extensions
