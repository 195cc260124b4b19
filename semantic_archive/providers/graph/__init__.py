"""Knowledge-graph persistence (SQLite + FTS5)."""

from semantic_archive.providers.graph.sqlite_graph_store import SQLiteGraphStore

__all__ = ["SQLiteGraphStore"]
