"""Abstract base class for archiving processed source files."""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementation: ZipArchiver (semantic_archive/providers/archive/)
class IArchiver(ABC):
    """Contract for moving a processed file into durable storage."""

    @abstractmethod
    async def archive_and_clean(self, file_path: str) -> None:
        """Append *file_path* to the archive, then delete the original.

        Raises
        ------
        semantic_archive.utils.errors.ArchivalError
            If the file is missing, the archive write fails, or the original
            cannot be deleted after a successful write.  The last case leaves
            the file both archived and still on disk.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this archiver."""
