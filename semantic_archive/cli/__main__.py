# =============================================================================
# semantic_archive/cli/__main__.py - Package Entry Point
# =============================================================================
#
# `python -m semantic_archive.cli` runs the ingestion CLI, the most common
# operation.  For search, run the module directly:
#     python -m semantic_archive.cli.search "query text"
# =============================================================================

"""Allow ``python -m semantic_archive.cli`` execution."""

from semantic_archive.cli.ingest import main

main()
