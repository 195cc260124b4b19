"""Cumulative ZIP archiver for processed source files.

Every successfully ingested file is appended to one archive (maximum
deflate compression) and then deleted from the ingest directory, so the
directory only ever holds work that is still pending or has failed.
"""

from __future__ import annotations

import asyncio
import zipfile
from pathlib import Path

from semantic_archive.interfaces.archiver import IArchiver
from semantic_archive.utils.errors import ArchivalError
from semantic_archive.utils.logging import get_logger

logger = get_logger(__name__)


class ZipArchiver(IArchiver):
    """Appends files to a single ZIP archive, then removes the originals."""

    def __init__(self, archive_path: str | Path, compress_level: int = 9) -> None:
        self._archive_path = Path(archive_path)
        self._compress_level = compress_level

    def get_provider_name(self) -> str:
        return "zip-archiver"

    async def archive_and_clean(self, file_path: str) -> None:
        await asyncio.to_thread(self._archive_and_clean, Path(file_path))

    def _archive_and_clean(self, path: Path) -> None:
        if not path.is_file():
            raise ArchivalError(
                message=f"File not found: {path}",
                provider_name=self.get_provider_name(),
            )

        try:
            self._archive_path.parent.mkdir(parents=True, exist_ok=True)
            # Mode "a" creates the archive on first use.
            with zipfile.ZipFile(
                self._archive_path,
                mode="a",
                compression=zipfile.ZIP_DEFLATED,
                compresslevel=self._compress_level,
            ) as archive:
                archive.write(path, arcname=path.name)
        except (OSError, zipfile.BadZipFile) as exc:
            raise ArchivalError(
                message=f"Could not append {path.name} to {self._archive_path}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.info(
            "file_archived",
            file=path.name,
            archive=str(self._archive_path),
            archive_bytes=self._archive_path.stat().st_size,
        )

        try:
            path.unlink()
        except OSError as exc:
            raise ArchivalError(
                message=f"Archived {path.name} but failed to delete original: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        logger.info("original_deleted", file=str(path))
