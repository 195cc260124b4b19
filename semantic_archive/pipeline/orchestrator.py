"""Ingestion pipeline: one source file in, one committed graph batch out.

ARCHITECTURE NOTE:
    The pipeline runs its stages strictly in sequence; each stage's output
    is the next stage's input and nothing runs in parallel within a job.

        Stage                Progress  Service
        ─────────────────────────────────────────────────────────────
        1. Extract              10     ITextExtractor
        2. Classify             30     DocumentClassifier
        3. Validate (optional)  45     ClassificationChecker
        4. Embed summary        60     IEmbeddingProvider
        5. Generate commands    75     CommandGenerator
        6. Execute              85     GraphExecutor (one transaction)
        7. Archive (optional)   95     IArchiver
        Done                   100

    Stages 1-5 never write to the graph, so an error in any of them leaves
    the store untouched.  Stage 6 is all-or-nothing.  An archival failure
    after a successful commit fails the attempt, and a retry re-runs the
    whole pipeline; the upserts and no-op-on-conflict inserts make that
    second commit a no-op.

    Stage errors are logged with their kind and re-raised unchanged; any
    other exception is wrapped in PipelineError.  Deciding whether to retry
    belongs to the job queue.
"""

from __future__ import annotations

import uuid

import structlog

from semantic_archive.interfaces.archiver import IArchiver
from semantic_archive.interfaces.embedding_provider import IEmbeddingProvider
from semantic_archive.interfaces.text_extractor import ITextExtractor
from semantic_archive.models.graph import DocumentUpsert, document_id_for
from semantic_archive.models.job import IngestionResult, IngestionStage
from semantic_archive.pipeline.progress_tracker import ProgressTracker
from semantic_archive.services.classification_checker import ClassificationChecker
from semantic_archive.services.classifier import DocumentClassifier
from semantic_archive.services.command_generator import CommandGenerator
from semantic_archive.services.graph_executor import GraphExecutor
from semantic_archive.utils.errors import ExtractionError, PipelineError, SemanticArchiveError
from semantic_archive.utils.logging import get_logger

STAGE_PROGRESS: dict[IngestionStage, float] = {
    IngestionStage.EXTRACT: 10.0,
    IngestionStage.CLASSIFY: 30.0,
    IngestionStage.VALIDATE: 45.0,
    IngestionStage.EMBED: 60.0,
    IngestionStage.GENERATE_COMMANDS: 75.0,
    IngestionStage.EXECUTE: 85.0,
    IngestionStage.ARCHIVE: 95.0,
    IngestionStage.DONE: 100.0,
}


class IngestionPipeline:
    """Runs every stage for one file.

    All collaborators are injected.  ``checker`` and ``archiver`` are
    optional: passing ``None`` disables the validation and archival stages.
    """

    def __init__(
        self,
        extractor: ITextExtractor,
        classifier: DocumentClassifier,
        embedding_provider: IEmbeddingProvider,
        command_generator: CommandGenerator,
        executor: GraphExecutor,
        progress_tracker: ProgressTracker,
        checker: ClassificationChecker | None = None,
        archiver: IArchiver | None = None,
    ) -> None:
        self._extractor = extractor
        self._classifier = classifier
        self._embedder = embedding_provider
        self._command_generator = command_generator
        self._executor = executor
        self._progress_tracker = progress_tracker
        self._checker = checker
        self._archiver = archiver
        self._logger: structlog.BoundLogger = get_logger(__name__)

    @property
    def validation_enabled(self) -> bool:
        return self._checker is not None

    @property
    def archival_enabled(self) -> bool:
        return self._archiver is not None

    async def run(self, file_path: str, job_id: str | None = None) -> IngestionResult:
        """Ingest *file_path* and return what was committed.

        Parameters
        ----------
        file_path:
            Path of the source file.  Its MD5 is the document id, so the
            same path always maps to the same Document entity.
        job_id:
            Key for progress updates.  A random id is used when omitted.

        Raises
        ------
        SemanticArchiveError
            Whatever the failing stage raised (see ``utils.errors``).
        PipelineError
            If a stage failed with an exception outside that hierarchy.
        """
        job_id = job_id or uuid.uuid4().hex
        log = self._logger.bind(job_id=job_id, file=file_path)
        self._progress_tracker.reset(job_id)
        stage = IngestionStage.EXTRACT

        try:
            # -- 1. Extract ------------------------------------------------
            await self._advance(job_id, stage, "Extracting text")
            text = await self._extractor.extract(file_path)
            if not text.strip():
                raise ExtractionError(
                    message=f"No text extracted from {file_path}",
                    provider_name=self._extractor.get_provider_name(),
                )
            file_metadata = self._extractor.file_metadata(file_path)

            # -- 2. Classify -----------------------------------------------
            stage = IngestionStage.CLASSIFY
            await self._advance(job_id, stage, "Classifying document")
            classification = await self._classifier.classify(text, file_metadata)

            # -- 3. Validate (optional) ------------------------------------
            if self._checker is not None:
                stage = IngestionStage.VALIDATE
                await self._advance(job_id, stage, "Validating classification")
                verdict = await self._checker.check(text, classification)
                log.info("validation_passed", reasoning=verdict.reasoning)

            # -- 4. Embed --------------------------------------------------
            stage = IngestionStage.EMBED
            await self._advance(job_id, stage, "Embedding summary")
            embedding = await self._embedder.embed_single(classification.summary)

            # -- 5. Generate commands --------------------------------------
            stage = IngestionStage.GENERATE_COMMANDS
            await self._advance(job_id, stage, "Generating graph commands")
            document_id = document_id_for(file_path)
            commands = await self._command_generator.generate(classification, document_id)

            # -- 6. Execute ------------------------------------------------
            stage = IngestionStage.EXECUTE
            await self._advance(job_id, stage, "Executing graph transaction")
            document = DocumentUpsert(
                id=document_id,
                document_type=classification.document_type.value,
                content=classification.summary,
                embedding=embedding,
                metadata={
                    **file_metadata,
                    "title": classification.title,
                    "originalPath": file_path,
                    "entities": [c.model_dump() for c in classification.entities],
                },
            )
            summary = await self._executor.execute(commands, document)

            # -- 7. Archive (optional) -------------------------------------
            archived = False
            if self._archiver is not None:
                stage = IngestionStage.ARCHIVE
                await self._advance(job_id, stage, "Archiving source file")
                await self._archiver.archive_and_clean(file_path)
                archived = True

        except SemanticArchiveError as exc:
            log.warning(
                "ingestion_stage_failed",
                stage=stage.value,
                error=str(exc),
                error_kind=exc.kind,
            )
            raise
        except Exception as exc:
            log.exception("ingestion_stage_crashed", stage=stage.value)
            raise PipelineError(
                message=f"Unexpected error during {stage.value}: {exc}",
                provider_name="pipeline",
            ) from exc

        await self._advance(job_id, IngestionStage.DONE, "Completed")
        result = IngestionResult(
            document_id=document_id,
            title=classification.title,
            file_path=file_path,
            entity_count=len(classification.entities),
            command_count=len(commands),
            relationships_inserted=summary.relationships_inserted,
            archived=archived,
        )
        log.info(
            "ingestion_complete",
            document_id=document_id,
            title=result.title,
            entities=result.entity_count,
            relationships=result.relationships_inserted,
            archived=archived,
        )
        return result

    async def _advance(self, job_id: str, stage: IngestionStage, message: str) -> None:
        await self._progress_tracker.update(job_id, stage, STAGE_PROGRESS[stage], message)
