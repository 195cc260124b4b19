# =============================================================================
# semantic_archive/cli/search.py - Query CLI
# =============================================================================
#
# Read-only access to the knowledge graph:
#
#   query          - hybrid search (vector + full-text, fused with RRF)
#   relationships  - one-hop neighbours of an entity
#
# A bare query is accepted as shorthand:
#   python -m semantic_archive.cli.search "redis cluster failover"
# is the same as
#   python -m semantic_archive.cli.search query "redis cluster failover"
#
# The --json flag prints machine-readable output instead of the report.
# =============================================================================

"""Command-line search over the Semantic Archive.

Usage::

    python -m semantic_archive.cli.search query <text> [--limit N] [--json]
    python -m semantic_archive.cli.search relationships <entity_id> [--json]
    python -m semantic_archive.cli.search <text>
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path

from semantic_archive.config.settings import Settings
from semantic_archive.models.graph import Neighbor
from semantic_archive.models.search import SearchResult

_SUBCOMMANDS = {"query", "relationships"}
_SNIPPET_CHARS = 300


# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------


def _format_results(query: str, results: list[SearchResult]) -> str:
    if not results:
        return f'No documents found for "{query}".'
    lines = [f'Results for "{query}":', ""]
    for index, result in enumerate(results, start=1):
        content = result.content
        if len(content) > _SNIPPET_CHARS:
            content = content[:_SNIPPET_CHARS].rstrip() + "..."
        lines.append(f"{index}. {result.title}")
        lines.append(f"   Score: {result.score:.4f} ({result.match_type.value})")
        lines.append(f"   ID:    {result.document_id}")
        lines.append(f"   {content}")
        lines.append("")
    return "\n".join(lines).rstrip()


def _format_neighbors(entity_id: str, neighbors: list[Neighbor]) -> str:
    if not neighbors:
        return f"No relationships found for {entity_id}."
    lines = [f"Relationships for {entity_id}:"]
    for neighbor in neighbors:
        arrow = "->" if neighbor.direction == "outgoing" else "<-"
        label = neighbor.metadata.get("title") or neighbor.entity_id
        lines.append(
            f"  {arrow} [{neighbor.relationship_class}] {label} "
            f"({neighbor.entity_class.value}: {neighbor.entity_type})"
        )
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


async def _handle_query(args: argparse.Namespace, settings: Settings) -> int:
    from semantic_archive.main import build_graph_store, build_search_service

    service = build_search_service(settings, graph_store=build_graph_store(settings))
    results = await service.search(args.text, limit=args.limit)
    if args.json:
        print(json.dumps([r.model_dump(mode="json") for r in results], indent=2))
    else:
        print(_format_results(args.text, results))
    return 0


async def _handle_relationships(args: argparse.Namespace, settings: Settings) -> int:
    from semantic_archive.main import build_graph_store, build_search_service

    service = build_search_service(settings, graph_store=build_graph_store(settings))
    neighbors = await service.relationships(args.entity_id)
    if args.json:
        print(json.dumps([n.model_dump(mode="json") for n in neighbors], indent=2))
    else:
        print(_format_neighbors(args.entity_id, neighbors))
    return 0


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def _build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the search CLI."""
    parser = argparse.ArgumentParser(
        prog="python -m semantic_archive.cli.search",
        description="Search the Semantic Archive knowledge graph.",
    )
    parser.add_argument(
        "--config",
        default="config/config.yaml",
        help="YAML config file (default: config/config.yaml)",
    )
    subparsers = parser.add_subparsers(dest="command")

    query_parser = subparsers.add_parser("query", help="Hybrid document search")
    query_parser.add_argument("text", help="Query text")
    query_parser.add_argument(
        "--limit", type=int, default=5, help="Number of results (default: 5)"
    )
    query_parser.add_argument("--json", action="store_true", help="Print JSON output")

    rel_parser = subparsers.add_parser("relationships", help="Show an entity's neighbours")
    rel_parser.add_argument("entity_id", help="Document or concept id")
    rel_parser.add_argument("--json", action="store_true", help="Print JSON output")

    return parser


def _normalize_argv(argv: list[str]) -> list[str]:
    """Insert ``query`` before a bare search term."""
    index = 0
    while index < len(argv):
        token = argv[index]
        if token == "--config":
            index += 2
            continue
        if token.startswith("--config=") or token in {"-h", "--help"}:
            index += 1
            continue
        if token in _SUBCOMMANDS:
            return argv
        return [*argv[:index], "query", *argv[index:]]
    return argv


def main(argv: list[str] | None = None) -> None:
    """CLI entry point for the search tool."""
    parser = _build_parser()
    args = parser.parse_args(_normalize_argv(list(sys.argv[1:] if argv is None else argv)))

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    if args.command == "query" and args.limit < 1:
        parser.error("--limit must be a positive integer")

    from semantic_archive.main import bootstrap
    from semantic_archive.utils.errors import SemanticArchiveError

    try:
        settings = bootstrap(args.config)
    except SemanticArchiveError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)

    if not Path(settings.db_path).exists():
        print(
            f"Error: database not found at {settings.db_path} "
            "(run `python -m semantic_archive.cli.ingest init-db` first)",
            file=sys.stderr,
        )
        sys.exit(1)

    handlers = {
        "query": _handle_query,
        "relationships": _handle_relationships,
    }
    try:
        exit_code = asyncio.run(handlers[args.command](args, settings))
    except SemanticArchiveError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        exit_code = 1

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
