"""Ingest-directory watcher built on watchdog.

watchdog delivers filesystem events on its observer thread.  The handler
only hands the path over to the event loop; everything else (dotfile and
extension filtering, waiting for the file to stop growing, invoking the
callback) runs as asyncio tasks on the loop that called :meth:`start`.

A file is reported once its size and mtime have been unchanged for
``stability_threshold`` seconds, so a large copy into the ingest directory
is not picked up half-written.
"""

from __future__ import annotations

import asyncio
import inspect
import time
from collections.abc import Awaitable, Callable
from pathlib import Path

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from semantic_archive.utils.logging import get_logger

logger = get_logger(__name__)

FileCallback = Callable[[str], Awaitable[None] | None]


class _IngestEventHandler(FileSystemEventHandler):
    """Forwards created/moved-in files to the watcher on the event loop."""

    def __init__(self, watcher: FileWatcher, loop: asyncio.AbstractEventLoop) -> None:
        self._watcher = watcher
        self._loop = loop

    def on_created(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._forward(str(event.src_path))

    def on_moved(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._forward(str(event.dest_path))

    def _forward(self, path: str) -> None:
        # Called on the observer thread.
        if self._loop.is_closed():
            return
        self._loop.call_soon_threadsafe(self._watcher.track, path)


class FileWatcher:
    """Watches a directory tree and reports each stable, supported file."""

    def __init__(
        self,
        directory: str | Path,
        on_file: FileCallback,
        is_supported: Callable[[str], bool],
        stability_threshold: float = 2.0,
        poll_interval: float = 0.1,
        process_existing: bool = True,
    ) -> None:
        self._directory = Path(directory)
        self._on_file = on_file
        self._is_supported = is_supported
        self._stability_threshold = stability_threshold
        self._poll_interval = poll_interval
        self._process_existing = process_existing
        self._observer: Observer | None = None
        self._pending: dict[str, asyncio.Task[None]] = {}

    @property
    def pending(self) -> list[str]:
        """Paths currently waiting for their size to settle."""
        return sorted(self._pending)

    async def start(self) -> None:
        """Start the observer and, optionally, pick up files already present."""
        self._directory.mkdir(parents=True, exist_ok=True)
        loop = asyncio.get_running_loop()

        observer = Observer()
        observer.schedule(_IngestEventHandler(self, loop), str(self._directory), recursive=True)
        observer.start()
        self._observer = observer
        logger.info("watcher_started", directory=str(self._directory))

        if self._process_existing:
            for path in sorted(self._directory.rglob("*")):
                if path.is_file():
                    self.track(str(path))

    async def stop(self) -> None:
        """Stop the observer and cancel files still waiting to settle."""
        if self._observer is not None:
            self._observer.stop()
            await asyncio.to_thread(self._observer.join, 5.0)
            self._observer = None
        tasks = list(self._pending.values())
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._pending.clear()
        logger.info("watcher_stopped", directory=str(self._directory))

    def should_ingest(self, path: str) -> bool:
        """Return False for dotfiles, files under dot-directories, and
        unsupported extensions."""
        candidate = Path(path)
        try:
            parts = candidate.relative_to(self._directory).parts
        except ValueError:
            parts = candidate.parts
        if any(part.startswith(".") for part in parts):
            return False
        return self._is_supported(candidate.suffix.lower())

    def track(self, path: str) -> None:
        """Begin waiting for *path* to settle.  Must run on the event loop."""
        if path in self._pending:
            return
        if not self.should_ingest(path):
            logger.debug("watcher_ignored", file=path)
            return
        task = asyncio.get_running_loop().create_task(self._await_stable(path))
        self._pending[path] = task
        task.add_done_callback(lambda _t, p=path: self._pending.pop(p, None))

    async def _await_stable(self, path: str) -> None:
        file_path = Path(path)
        last_seen: tuple[int, float] | None = None
        stable_since = time.monotonic()

        while True:
            try:
                stats = file_path.stat()
            except FileNotFoundError:
                logger.debug("watcher_file_vanished", file=path)
                return
            current = (stats.st_size, stats.st_mtime)
            now = time.monotonic()
            if current != last_seen:
                last_seen = current
                stable_since = now
            elif now - stable_since >= self._stability_threshold:
                break
            await asyncio.sleep(self._poll_interval)

        logger.info("watcher_file_ready", file=path, size=last_seen[0])
        try:
            result = self._on_file(path)
            if inspect.isawaitable(result):
                await result
        except Exception as exc:
            logger.error("watcher_callback_failed", file=path, error=str(exc))
