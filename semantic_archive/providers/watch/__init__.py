"""Ingest-directory watching."""

from semantic_archive.providers.watch.file_watcher import FileWatcher

__all__ = ["FileWatcher"]
