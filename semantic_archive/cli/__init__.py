# =============================================================================
# semantic_archive/cli/__init__.py - CLI Module Overview
# =============================================================================
#
# Two standalone command-line tools, each runnable as a module:
#
#   1. INGESTION (ingest.py)
#      Creates the graph schema and feeds files through the ingestion
#      pipeline: one file at a time, a whole directory through the worker
#      pool, or continuously from the watched ingest directory.
#
#   2. SEARCH (search.py)
#      Hybrid document search and one-hop relationship lookups against
#      the graph built by the ingestion tool.
#
# Architecture Notes:
#   - Both tools use argparse for argument parsing.
#   - Provider and service imports are deferred inside the handlers so
#     `--help` stays fast.
#   - All wiring goes through semantic_archive.main; the CLI never
#     constructs a provider itself.
# =============================================================================

"""CLI tools for Semantic Archive.

- ``python -m semantic_archive.cli.ingest`` - build and maintain the graph
- ``python -m semantic_archive.cli.search`` - query the graph
"""
