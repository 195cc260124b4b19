# =============================================================================
# semantic_archive/cli/ingest.py - Ingestion CLI
# =============================================================================
#
# Subcommands:
#
#   init-db   - create the graph schema (``--reset`` drops everything first)
#   process   - ingest one file with a single attempt; exit 1 on failure
#   batch     - ingest every supported file under a directory through the
#               worker pool, with retries and the start-rate limit
#   watch     - watch the ingest directory and ingest files as they appear
#
# Usage examples:
#   python -m semantic_archive.cli.ingest init-db
#   python -m semantic_archive.cli.ingest process notes/redis.md
#   python -m semantic_archive.cli.ingest batch data/ingest --limit 20
#   python -m semantic_archive.cli.ingest watch
#
# Results go to stdout; structured logs go to stderr.
# =============================================================================

"""Command-line entry point for building the knowledge graph.

Usage::

    python -m semantic_archive.cli.ingest init-db [--reset]
    python -m semantic_archive.cli.ingest process <file>
    python -m semantic_archive.cli.ingest batch [directory] [--limit N]
    python -m semantic_archive.cli.ingest watch
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

from semantic_archive.config.settings import Settings
from semantic_archive.models.job import IngestionStage, JobSnapshot, JobState


def _discover_files(directory: Path, settings: Settings, limit: int | None) -> list[Path]:
    """Supported, non-hidden files under *directory*, in path order."""
    found: list[Path] = []
    for path in sorted(directory.rglob("*")):
        if not path.is_file():
            continue
        if any(part.startswith(".") for part in path.relative_to(directory).parts):
            continue
        if not settings.is_supported(path.suffix):
            continue
        found.append(path)
        if limit is not None and len(found) >= limit:
            break
    return found


async def _print_progress(
    job_id: str, stage: IngestionStage, progress: float, message: str
) -> None:
    print(f"  [{progress:5.1f}%] {message}")


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


async def _handle_init_db(args: argparse.Namespace, settings: Settings) -> int:
    from semantic_archive.main import build_graph_store

    store = build_graph_store(settings)
    await store.initialize(reset=args.reset)
    counts = await store.counts()
    print(f"Database ready: {settings.db_path}")
    print(
        f"  Documents: {counts['documents']}  Concepts: {counts['concepts']}  "
        f"Relationships: {counts['relationships']}"
    )
    return 0


async def _handle_process(args: argparse.Namespace, settings: Settings) -> int:
    from semantic_archive.main import build_application
    from semantic_archive.pipeline.progress_tracker import ALL_JOBS
    from semantic_archive.utils.errors import JobFailedError

    file_path = Path(args.file)
    if not file_path.is_file():
        print(f"Error: file not found: {file_path}", file=sys.stderr)
        return 1

    app = build_application(settings)
    await app.graph_store.initialize()
    app.progress_tracker.register_listener(ALL_JOBS, _print_progress)

    print(f"Processing: {file_path.name}")
    try:
        result = await app.job_queue.process(str(file_path))
    except JobFailedError as exc:
        cause = exc.__cause__ or exc
        print(f"Failed: {file_path.name}", file=sys.stderr)
        print(f"  Error: {cause}", file=sys.stderr)
        return 1

    print(f"Completed: {result.title}")
    print(f"  Document ID:   {result.document_id}")
    print(f"  Entities:      {result.entity_count}")
    print(f"  Relationships: {result.relationships_inserted}")
    print(f"  Archived:      {'yes' if result.archived else 'no'}")
    return 0


async def _handle_batch(args: argparse.Namespace, settings: Settings) -> int:
    from semantic_archive.main import build_application, build_rate_limit

    directory = Path(args.directory or settings.ingest_path)
    if not directory.is_dir():
        print(f"Error: not a directory: {directory}", file=sys.stderr)
        return 1

    files = _discover_files(directory, settings, args.limit)
    if not files:
        print(f"No supported files found in {directory}")
        return 0

    app = build_application(settings)
    await app.graph_store.initialize()
    for path in files:
        app.job_queue.enqueue(str(path))
    print(f"Queued {len(files)} file(s) from {directory}")

    await app.job_queue.run_workers(settings.concurrency, build_rate_limit(settings))
    try:
        snapshots = await app.job_queue.drain()
    finally:
        await app.job_queue.close()

    failed = [s for s in snapshots if s.state is JobState.FAILED]
    print("\nBatch complete:")
    print(f"  Completed: {len(snapshots) - len(failed)}")
    print(f"  Failed:    {len(failed)}")
    for snapshot in failed:
        print(f"    {snapshot.file_path}: {snapshot.error_kind}: {snapshot.error}")
    return 1 if failed else 0


async def _handle_watch(args: argparse.Namespace, settings: Settings) -> int:
    from semantic_archive.main import build_application, build_rate_limit
    from semantic_archive.providers.watch.file_watcher import FileWatcher

    app = build_application(settings)
    await app.graph_store.initialize()

    def _report_completed(snapshot: JobSnapshot) -> None:
        print(f"Completed: {snapshot.file_path}")

    def _report_failed(snapshot: JobSnapshot, error: BaseException) -> None:
        print(f"Failed: {snapshot.file_path}: {error}", file=sys.stderr)

    app.job_queue.on_completed(_report_completed)
    app.job_queue.on_failed(_report_failed)

    watcher = FileWatcher(
        directory=settings.ingest_path,
        on_file=app.job_queue.enqueue,
        is_supported=settings.is_supported,
        stability_threshold=settings.watch_stability_threshold,
    )
    await app.job_queue.run_workers(settings.concurrency, build_rate_limit(settings))
    await watcher.start()
    print(f"Watching {settings.ingest_path} (Ctrl+C to stop)")
    try:
        await asyncio.Event().wait()
    finally:
        await watcher.stop()
        await app.job_queue.close()
    return 0


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def _build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the ingestion CLI."""
    parser = argparse.ArgumentParser(
        prog="python -m semantic_archive.cli.ingest",
        description="Ingest documents into the Semantic Archive knowledge graph.",
    )
    parser.add_argument(
        "--config",
        default="config/config.yaml",
        help="YAML config file (default: config/config.yaml)",
    )
    subparsers = parser.add_subparsers(dest="command")

    init_parser = subparsers.add_parser("init-db", help="Create the graph schema")
    init_parser.add_argument(
        "--reset",
        action="store_true",
        help="Drop all tables first (deletes every entity and relationship)",
    )

    process_parser = subparsers.add_parser("process", help="Ingest a single file once")
    process_parser.add_argument("file", help="Path of the file to ingest")

    batch_parser = subparsers.add_parser("batch", help="Ingest every file in a directory")
    batch_parser.add_argument(
        "directory",
        nargs="?",
        default=None,
        help="Directory to scan recursively (default: the configured ingest path)",
    )
    batch_parser.add_argument("--limit", type=int, default=None, help="Maximum files to queue")

    subparsers.add_parser("watch", help="Watch the ingest directory")

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entry point for the ingestion tool."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    if args.command == "batch" and args.limit is not None and args.limit < 1:
        parser.error("--limit must be a positive integer")

    from semantic_archive.main import bootstrap
    from semantic_archive.utils.errors import SemanticArchiveError

    try:
        settings = bootstrap(args.config)
    except SemanticArchiveError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)

    handlers = {
        "init-db": _handle_init_db,
        "process": _handle_process,
        "batch": _handle_batch,
        "watch": _handle_watch,
    }
    try:
        exit_code = asyncio.run(handlers[args.command](args, settings))
    except KeyboardInterrupt:
        print("\nStopped.")
        exit_code = 0
    except SemanticArchiveError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        exit_code = 1

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
