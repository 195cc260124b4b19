"""Text extraction through command-line converters.

Routing by file extension:

- ``.pdf``  -> ``pdftotext -layout <file> -`` (poppler-utils)
- ``.docx`` -> ``pandoc -f docx -t gfm <file>`` (GitHub-flavoured Markdown)
- plain text, code, config and data files, and files with no extension,
  are read directly as UTF-8
- anything else raises :class:`UnsupportedFormatError`

Converters write the extracted text to stdout.  Anything they print on
stderr is logged as a warning but does not fail the extraction; only a
non-zero exit status does.
"""

from __future__ import annotations

import asyncio
import shutil
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from semantic_archive.interfaces.text_extractor import ITextExtractor
from semantic_archive.utils.errors import ExtractionError, UnsupportedFormatError
from semantic_archive.utils.logging import get_logger

logger = get_logger(__name__)

_TEXT_EXTENSIONS: frozenset[str] = frozenset({
    ".txt", ".md", ".markdown",
    ".idea", ".gemini", ".research",
    ".py", ".js", ".sh", ".json", ".yaml", ".yml", ".ini", ".conf",
    ".log", ".csv", ".tsv",
})

# extension -> argv builder; the file path is substituted at call time.
_CONVERTERS: dict[str, tuple[str, ...]] = {
    ".pdf": ("pdftotext", "-layout", "{path}", "-"),
    ".docx": ("pandoc", "-f", "docx", "-t", "gfm", "{path}"),
}


def _timestamp(epoch: float) -> str:
    return datetime.fromtimestamp(epoch, tz=timezone.utc).isoformat()  # noqa: UP017


class SubprocessTextExtractor(ITextExtractor):
    """Extracts text with pdftotext, pandoc, or a direct file read."""

    def get_provider_name(self) -> str:
        return "subprocess-extractor"

    def supports(self, file_path: str) -> bool:
        ext = Path(file_path).suffix.lower()
        return ext == "" or ext in _TEXT_EXTENSIONS or ext in _CONVERTERS

    async def extract(self, file_path: str) -> str:
        path = Path(file_path)
        ext = path.suffix.lower()

        if ext in _CONVERTERS:
            argv = [part.format(path=str(path)) for part in _CONVERTERS[ext]]
            return await self._run_converter(argv, path)

        if ext == "" or ext in _TEXT_EXTENSIONS:
            try:
                return await asyncio.to_thread(
                    path.read_text, encoding="utf-8", errors="replace"
                )
            except OSError as exc:
                raise ExtractionError(
                    message=f"Could not read {path}: {exc}",
                    provider_name=self.get_provider_name(),
                ) from exc

        raise UnsupportedFormatError(
            message=f"Unsupported file extension: {ext}",
            provider_name=self.get_provider_name(),
        )

    async def _run_converter(self, argv: list[str], path: Path) -> str:
        tool = argv[0]
        if not shutil.which(tool):
            raise ExtractionError(
                message=f"{tool} not installed; cannot extract {path.name}",
                provider_name=tool,
            )
        if not path.is_file():
            raise ExtractionError(
                message=f"File not found: {path}",
                provider_name=tool,
            )

        try:
            proc = await asyncio.create_subprocess_exec(
                *argv,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise ExtractionError(
                message=f"Failed to start {tool}: {exc}",
                provider_name=tool,
            ) from exc
        stdout, stderr = await proc.communicate()

        if stderr.strip():
            logger.warning(
                "extraction_stderr",
                tool=tool,
                file=str(path),
                stderr=stderr.decode("utf-8", errors="replace")[:500],
            )
        if proc.returncode != 0:
            raise ExtractionError(
                message=f"{tool} exited with code {proc.returncode} for {path.name}",
                provider_name=tool,
            )

        logger.debug("document_converted", tool=tool, file=str(path), bytes=len(stdout))
        return stdout.decode("utf-8", errors="replace")

    def file_metadata(self, file_path: str) -> dict[str, Any]:
        path = Path(file_path)
        try:
            stats = path.stat()
        except OSError as exc:
            raise ExtractionError(
                message=f"Could not stat {path}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        # st_birthtime only exists on macOS/BSD; fall back to ctime elsewhere.
        created = getattr(stats, "st_birthtime", stats.st_ctime)
        return {
            "fileName": path.name,
            "extension": path.suffix,
            "directory": str(path.parent),
            "size": stats.st_size,
            "created": _timestamp(created),
            "modified": _timestamp(stats.st_mtime),
        }
