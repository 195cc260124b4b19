"""In-process ingestion job queue with a bounded, rate-limited worker pool.

# ─── DESIGN ────────────────────────────────────────────────────────────
#
# Every source file becomes a job.  Jobs sit in a shared asyncio.Queue of
# ready job ids; ``run_workers`` starts N worker tasks that pull from it,
# so at most N jobs are active at once.  Before starting a job a worker
# also takes a slot from a sliding-window RateLimiter, which caps how many
# jobs may *start* per window no matter how many workers are idle.
#
# A failed attempt n (1-based) is re-queued after
#
#     backoff_base * 2 ** (n - 1)   seconds   (base, 2*base, 4*base, ...)
#
# until attempts == max_attempts, when the job is FAILED for good.  The
# delay is recorded on the job.  Nothing here deletes source files: a file
# whose job failed stays in the ingest directory for a manual retry.
#
# Content errors (validation rejection, malformed model output) are retried
# like any other failure but logged as ``content_error_will_not_self_heal``
# so an operator can tell them apart from transient outages.
#
# Job state is in-memory only.  Restarting the process forgets the queue;
# ``batch`` and ``watch`` rediscover pending files from the ingest directory.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from uuid import uuid4

import structlog

from semantic_archive.models.job import IngestionResult, JobSnapshot, JobState
from semantic_archive.pipeline.progress_tracker import ProgressTracker
from semantic_archive.utils.concurrency import RateLimit, RateLimiter
from semantic_archive.utils.errors import JobFailedError, PipelineError, SemanticArchiveError
from semantic_archive.utils.logging import get_logger

logger: structlog.BoundLogger = get_logger(__name__)

# (file_path, job_id) -> result; IngestionPipeline.run has this shape.
JobHandler = Callable[[str, str], Awaitable[IngestionResult]]
CompletedListener = Callable[[JobSnapshot], Awaitable[None] | None]
FailedListener = Callable[[JobSnapshot, BaseException], Awaitable[None] | None]


def _now() -> datetime:
    return datetime.now(timezone.utc)  # noqa: UP017


def _error_kind(exc: BaseException) -> str:
    if isinstance(exc, SemanticArchiveError):
        return exc.kind
    return type(exc).__name__


class _Job:
    """Internal mutable state for one job.

    Never handed out directly; callers get :class:`JobSnapshot` copies.
    """

    def __init__(
        self,
        job_id: str,
        file_path: str,
        max_attempts: int,
        backoff_base: float,
    ) -> None:
        self.id = job_id
        self.file_path = file_path
        self.max_attempts = max_attempts
        self.backoff_base = backoff_base
        self.state = JobState.WAITING
        self.attempts = 0
        self.delays: list[float] = []
        self.result: IngestionResult | None = None
        self.error: BaseException | None = None
        self.created_at = _now()
        self.finished_at: datetime | None = None
        self.finished = asyncio.Event()

    def snapshot(self, progress: float) -> JobSnapshot:
        return JobSnapshot(
            id=self.id,
            file_path=self.file_path,
            state=self.state,
            attempts=self.attempts,
            max_attempts=self.max_attempts,
            backoff_base=self.backoff_base,
            progress=100.0 if self.state is JobState.COMPLETED else progress,
            delays=list(self.delays),
            result=self.result,
            error=str(self.error) if self.error is not None else None,
            error_kind=_error_kind(self.error) if self.error is not None else None,
            content_error=bool(getattr(self.error, "is_content_error", False)),
            created_at=self.created_at,
            finished_at=self.finished_at,
        )


class JobQueue:
    """Queue of ingestion jobs plus the worker pool that drains it.

    Parameters
    ----------
    handler:
        Coroutine function run once per attempt with ``(file_path, job_id)``.
    progress_tracker:
        Source of per-job progress for snapshots.  Optional.
    max_attempts:
        Default attempt budget for :meth:`enqueue`.
    backoff_base:
        Default delay in seconds before the first retry.
    sleep:
        Async sleep used for backoff delays.
    """

    def __init__(
        self,
        handler: JobHandler,
        progress_tracker: ProgressTracker | None = None,
        max_attempts: int = 3,
        backoff_base: float = 2.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")
        self._handler = handler
        self._progress_tracker = progress_tracker
        self._default_max_attempts = max_attempts
        self._default_backoff_base = backoff_base
        self._sleep = sleep

        self._jobs: dict[str, _Job] = {}
        self._ready: asyncio.Queue[str] = asyncio.Queue()
        self._workers: list[asyncio.Task[None]] = []
        self._delayed: set[asyncio.Task[None]] = set()
        self._limiter: RateLimiter | None = None
        self._completed_listeners: list[CompletedListener] = []
        self._failed_listeners: list[FailedListener] = []

    # ─── Enqueue / inspect ─────────────────────────────────────────────

    def enqueue(
        self,
        file_path: str,
        max_attempts: int | None = None,
        backoff_base: float | None = None,
    ) -> str:
        """Add a job for *file_path* and return its id.

        The job starts once a worker is free (see :meth:`run_workers`).
        """
        job = self._create_job(file_path, max_attempts, backoff_base)
        self._ready.put_nowait(job.id)
        logger.info(
            "job_enqueued",
            job_id=job.id,
            file=file_path,
            max_attempts=job.max_attempts,
        )
        return job.id

    def get_job(self, job_id: str) -> JobSnapshot | None:
        job = self._jobs.get(job_id)
        return self._snapshot(job) if job is not None else None

    def jobs(self) -> list[JobSnapshot]:
        """Snapshots of every known job, oldest first."""
        return [self._snapshot(job) for job in self._jobs.values()]

    async def wait_for(self, job_id: str) -> JobSnapshot:
        """Block until *job_id* is COMPLETED or FAILED.

        Raises
        ------
        KeyError
            If the job id is unknown.
        """
        job = self._jobs[job_id]
        await job.finished.wait()
        return self._snapshot(job)

    async def drain(self) -> list[JobSnapshot]:
        """Block until every known job (including ones added meanwhile) is
        terminal, then return all snapshots."""
        while True:
            pending = [job for job in self._jobs.values() if not job.state.is_terminal]
            if not pending:
                return self.jobs()
            await asyncio.gather(*(job.finished.wait() for job in pending))

    # ─── Listeners ─────────────────────────────────────────────────────

    def on_completed(self, callback: CompletedListener) -> None:
        """Call ``callback(snapshot)`` whenever a job completes."""
        self._completed_listeners.append(callback)

    def on_failed(self, callback: FailedListener) -> None:
        """Call ``callback(snapshot, error)`` whenever a job fails for good."""
        self._failed_listeners.append(callback)

    # ─── Worker pool ───────────────────────────────────────────────────

    @property
    def running(self) -> bool:
        return any(not task.done() for task in self._workers)

    async def run_workers(
        self,
        concurrency: int = 2,
        rate_limit: RateLimit | None = None,
    ) -> None:
        """Start *concurrency* worker tasks and return immediately.

        Raises
        ------
        RuntimeError
            If workers are already running.
        """
        if concurrency < 1:
            raise ValueError(f"concurrency must be >= 1, got {concurrency}")
        if self.running:
            raise RuntimeError("Workers are already running")

        self._limiter = RateLimiter(rate_limit) if rate_limit is not None else None
        self._workers = [
            asyncio.create_task(self._worker(index), name=f"ingest-worker-{index}")
            for index in range(concurrency)
        ]
        logger.info(
            "workers_started",
            concurrency=concurrency,
            rate_limit_max=rate_limit.max if rate_limit else None,
            rate_limit_window_s=rate_limit.window if rate_limit else None,
        )

    async def process(self, file_path: str) -> IngestionResult:
        """Run exactly one attempt for *file_path* and return its result.

        Uses the running pool when there is one (so the rate limit applies);
        otherwise the attempt runs directly in the caller's task.

        Raises
        ------
        JobFailedError
            If the attempt fails.  The original error is the ``__cause__``.
        """
        job = self._create_job(file_path, max_attempts=1, backoff_base=0.0)
        if self.running:
            self._ready.put_nowait(job.id)
        else:
            if self._limiter is not None:
                await self._limiter.acquire()
            await self._run_attempt(job)

        await job.finished.wait()
        if job.state is JobState.COMPLETED and job.result is not None:
            return job.result
        raise JobFailedError(
            message=f"Processing {file_path} failed: {job.error}",
            provider_name="job-queue",
            job_id=job.id,
        ) from job.error

    async def close(self) -> None:
        """Stop the workers and cancel pending retry timers.

        Jobs left waiting, delayed or interrupted mid-attempt are marked
        FAILED so that :meth:`wait_for`, :meth:`process` and :meth:`drain`
        return.  An inline :meth:`process` attempt still running in its
        caller's task is left to finish.
        """
        tasks = [*self._workers, *self._delayed]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._workers = []
        self._delayed.clear()

        abandoned = 0
        for job in self._jobs.values():
            if job.state.is_terminal or job.state is JobState.ACTIVE:
                continue
            job.error = PipelineError(
                message=f"Queue closed before {job.file_path} finished",
                provider_name="job-queue",
            )
            job.state = JobState.FAILED
            job.finished_at = _now()
            job.finished.set()
            abandoned += 1
        logger.info("workers_stopped", jobs=len(self._jobs), abandoned=abandoned)

    # ─── Internals ─────────────────────────────────────────────────────

    def _create_job(
        self,
        file_path: str,
        max_attempts: int | None,
        backoff_base: float | None,
    ) -> _Job:
        attempts = self._default_max_attempts if max_attempts is None else max_attempts
        base = self._default_backoff_base if backoff_base is None else backoff_base
        if attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {attempts}")
        if base < 0:
            raise ValueError(f"backoff_base must be >= 0, got {base}")
        job = _Job(str(uuid4()), file_path, attempts, base)
        self._jobs[job.id] = job
        return job

    def _snapshot(self, job: _Job) -> JobSnapshot:
        progress = 0.0
        if self._progress_tracker is not None:
            progress = float(self._progress_tracker.get_status(job.id)["progress"])
        return job.snapshot(progress)

    async def _worker(self, index: int) -> None:
        while True:
            job_id = await self._ready.get()
            try:
                job = self._jobs.get(job_id)
                if job is None or job.state.is_terminal:
                    continue
                if self._limiter is not None:
                    await self._limiter.acquire()
                await self._run_attempt(job)
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                logger.error("worker_error", worker=index, job_id=job_id, error=str(exc))
            finally:
                self._ready.task_done()

    async def _run_attempt(self, job: _Job) -> None:
        job.state = JobState.ACTIVE
        job.attempts += 1
        logger.info(
            "job_started",
            job_id=job.id,
            file=job.file_path,
            attempt=job.attempts,
            max_attempts=job.max_attempts,
        )
        try:
            result = await self._handler(job.file_path, job.id)
        except asyncio.CancelledError:
            job.attempts -= 1
            job.state = JobState.WAITING
            raise
        except Exception as exc:
            await self._handle_failure(job, exc)
            return

        job.result = result
        job.error = None
        job.state = JobState.COMPLETED
        job.finished_at = _now()
        job.finished.set()
        logger.info(
            "job_completed",
            job_id=job.id,
            file=job.file_path,
            attempt=job.attempts,
            document_id=result.document_id,
        )
        await self._notify(self._completed_listeners, self._snapshot(job))

    async def _handle_failure(self, job: _Job, exc: Exception) -> None:
        job.error = exc
        kind = _error_kind(exc)
        content_error = bool(getattr(exc, "is_content_error", False))

        if job.attempts >= job.max_attempts:
            job.state = JobState.FAILED
            job.finished_at = _now()
            job.finished.set()
            logger.error(
                "job_failed_permanently",
                job_id=job.id,
                file=job.file_path,
                attempts=job.attempts,
                error=str(exc),
                error_kind=kind,
                content_error=content_error,
            )
            await self._notify(self._failed_listeners, self._snapshot(job), exc)
            return

        delay = job.backoff_base * 2 ** (job.attempts - 1)
        job.delays.append(delay)
        job.state = JobState.DELAYED
        if content_error:
            logger.warning(
                "content_error_will_not_self_heal",
                job_id=job.id,
                file=job.file_path,
                attempt=job.attempts,
                error=str(exc),
                error_kind=kind,
            )
        logger.warning(
            "job_retry_scheduled",
            job_id=job.id,
            file=job.file_path,
            attempt=job.attempts,
            delay_s=delay,
            error=str(exc),
            error_kind=kind,
        )
        task = asyncio.create_task(self._requeue_after(job, delay))
        self._delayed.add(task)
        task.add_done_callback(self._delayed.discard)

    async def _requeue_after(self, job: _Job, delay: float) -> None:
        await self._sleep(delay)
        job.state = JobState.WAITING
        self._ready.put_nowait(job.id)

    @staticmethod
    async def _notify(listeners: list[Callable], *args: object) -> None:
        for callback in listeners:
            try:
                result = callback(*args)
                if inspect.isawaitable(result):
                    await result
            except Exception as exc:
                logger.warning(
                    "job_listener_error",
                    error=str(exc),
                    callback=getattr(callback, "__name__", repr(callback)),
                )
