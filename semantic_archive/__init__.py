"""Semantic Archive: turn a directory of notes and documents into a
queryable knowledge graph with hybrid vector and full-text search."""

__version__ = "0.1.0"
