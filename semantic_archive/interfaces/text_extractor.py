"""Abstract base class for file-to-text extraction."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


# Concrete implementation: SubprocessTextExtractor (semantic_archive/providers/extraction/)
class ITextExtractor(ABC):
    """Contract for turning a file on disk into plain text."""

    @abstractmethod
    async def extract(self, file_path: str) -> str:
        """Return the plain text of *file_path*.

        Raises
        ------
        semantic_archive.utils.errors.UnsupportedFormatError
            If no extractor handles the file's extension.
        semantic_archive.utils.errors.ExtractionError
            If the converter fails or the file cannot be read.
        """

    @abstractmethod
    def supports(self, file_path: str) -> bool:
        """Return ``True`` if :meth:`extract` can handle *file_path*."""

    @abstractmethod
    def file_metadata(self, file_path: str) -> dict[str, Any]:
        """Return JSON-serialisable metadata about the file itself.

        Keys: ``fileName``, ``extension``, ``directory``, ``size``,
        ``created``, ``modified``.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this extractor."""
