"""Ingestion orchestration: the staged pipeline, its job queue, and progress."""

from semantic_archive.pipeline.job_queue import JobQueue
from semantic_archive.pipeline.orchestrator import STAGE_PROGRESS, IngestionPipeline
from semantic_archive.pipeline.progress_tracker import ProgressTracker

__all__ = [
    "STAGE_PROGRESS",
    "IngestionPipeline",
    "JobQueue",
    "ProgressTracker",
]
