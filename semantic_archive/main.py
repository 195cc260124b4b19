"""Semantic Archive composition root.

Builds every provider, service and pipeline component from one
:class:`Settings` instance.  Nothing else in the package constructs
concrete providers, so swapping an implementation (or injecting a fake in
tests) happens here and only here.

Every ``build_*`` helper accepts already-built collaborators as keyword
overrides, which is how the CLI shares one graph store between the
pipeline and the search service, and how tests inject mocks.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import structlog

from semantic_archive.config.loader import load_settings
from semantic_archive.config.settings import Settings
from semantic_archive.interfaces.archiver import IArchiver
from semantic_archive.interfaces.embedding_provider import IEmbeddingProvider
from semantic_archive.interfaces.graph_store import IGraphStore
from semantic_archive.interfaces.llm_provider import ILLMProvider
from semantic_archive.interfaces.text_extractor import ITextExtractor
from semantic_archive.pipeline.job_queue import JobQueue
from semantic_archive.pipeline.orchestrator import IngestionPipeline
from semantic_archive.pipeline.progress_tracker import ProgressTracker
from semantic_archive.providers.archive.zip_archiver import ZipArchiver
from semantic_archive.providers.embedding.ollama_embedding_provider import (
    OllamaEmbeddingProvider,
)
from semantic_archive.providers.extraction.subprocess_extractor import (
    SubprocessTextExtractor,
)
from semantic_archive.providers.graph.sqlite_graph_store import SQLiteGraphStore
from semantic_archive.providers.llm.ollama_provider import OllamaLLMProvider
from semantic_archive.services.classification_checker import ClassificationChecker
from semantic_archive.services.classifier import DocumentClassifier
from semantic_archive.services.command_generator import CommandGenerator
from semantic_archive.services.graph_executor import GraphExecutor
from semantic_archive.services.search_service import HybridSearchService
from semantic_archive.utils.concurrency import RateLimit
from semantic_archive.utils.logging import configure_logging, get_logger

_logger: structlog.BoundLogger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Settings & logging
# ---------------------------------------------------------------------------


def bootstrap(config_path: str | Path | None = "config/config.yaml") -> Settings:
    """Load settings and configure logging once for a process."""
    settings = load_settings(config_path)
    configure_logging(log_level=settings.log_level, app_env=settings.app_env)
    return settings


# ---------------------------------------------------------------------------
# Providers
# ---------------------------------------------------------------------------


def build_llm_provider(settings: Settings) -> ILLMProvider:
    return OllamaLLMProvider(settings=settings)


def build_embedding_provider(settings: Settings) -> IEmbeddingProvider:
    return OllamaEmbeddingProvider(settings=settings)


def build_graph_store(settings: Settings) -> IGraphStore:
    return SQLiteGraphStore(db_path=settings.db_path, embedding_dim=settings.embedding_dim)


def build_rate_limit(settings: Settings) -> RateLimit:
    return RateLimit(max=settings.rate_limit_max, window=settings.rate_limit_window)


# ---------------------------------------------------------------------------
# Pipeline & query side
# ---------------------------------------------------------------------------


def build_pipeline(
    settings: Settings,
    *,
    graph_store: IGraphStore | None = None,
    llm_provider: ILLMProvider | None = None,
    embedding_provider: IEmbeddingProvider | None = None,
    extractor: ITextExtractor | None = None,
    archiver: IArchiver | None = None,
    progress_tracker: ProgressTracker | None = None,
) -> IngestionPipeline:
    """Assemble the ingestion pipeline.

    The validation stage is wired in only when ``check_validation`` is set,
    and the archival stage only when ``enable_archival`` is set.
    """
    llm = llm_provider or build_llm_provider(settings)
    store = graph_store or build_graph_store(settings)

    checker = None
    if settings.check_validation:
        checker = ClassificationChecker(
            llm,
            model=settings.checker_model,
            char_limit=settings.validate_char_limit,
        )

    stage_archiver = None
    if settings.enable_archival:
        stage_archiver = archiver or ZipArchiver(settings.archive_path)

    _logger.debug(
        "pipeline_built",
        validation=checker is not None,
        archival=stage_archiver is not None,
        db_path=settings.db_path,
    )
    return IngestionPipeline(
        extractor=extractor or SubprocessTextExtractor(),
        classifier=DocumentClassifier(
            llm,
            model=settings.classifier_model,
            char_limit=settings.classify_char_limit,
        ),
        embedding_provider=embedding_provider or build_embedding_provider(settings),
        command_generator=CommandGenerator(llm, model=settings.function_caller_model),
        executor=GraphExecutor(store),
        progress_tracker=progress_tracker or ProgressTracker(),
        checker=checker,
        archiver=stage_archiver,
    )


def build_job_queue(
    settings: Settings,
    pipeline: IngestionPipeline,
    progress_tracker: ProgressTracker | None = None,
) -> JobQueue:
    return JobQueue(
        handler=pipeline.run,
        progress_tracker=progress_tracker,
        max_attempts=settings.max_retries,
        backoff_base=settings.backoff_base,
    )


def build_search_service(
    settings: Settings,
    *,
    graph_store: IGraphStore | None = None,
    embedding_provider: IEmbeddingProvider | None = None,
) -> HybridSearchService:
    return HybridSearchService(
        graph_store=graph_store or build_graph_store(settings),
        embedding_provider=embedding_provider or build_embedding_provider(settings),
        candidates=settings.search_candidates,
        rrf_k=settings.rrf_k,
    )


@dataclass
class Application:
    """Every long-lived component, sharing one store and one tracker."""

    settings: Settings
    graph_store: IGraphStore
    progress_tracker: ProgressTracker
    pipeline: IngestionPipeline
    job_queue: JobQueue
    search: HybridSearchService


def build_application(settings: Settings) -> Application:
    """Wire the full ingestion + search stack around shared providers."""
    graph_store = build_graph_store(settings)
    embedder = build_embedding_provider(settings)
    tracker = ProgressTracker()
    pipeline = build_pipeline(
        settings,
        graph_store=graph_store,
        embedding_provider=embedder,
        progress_tracker=tracker,
    )
    return Application(
        settings=settings,
        graph_store=graph_store,
        progress_tracker=tracker,
        pipeline=pipeline,
        job_queue=build_job_queue(settings, pipeline, tracker),
        search=build_search_service(
            settings, graph_store=graph_store, embedding_provider=embedder
        ),
    )
