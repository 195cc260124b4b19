"""File-to-text extraction adapters."""

from semantic_archive.providers.extraction.subprocess_extractor import (
    SubprocessTextExtractor,
)

__all__ = ["SubprocessTextExtractor"]
