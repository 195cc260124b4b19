"""Job progress tracking with callback-based listener notification.

Tracks the current stage and progress percentage of each ingestion job and
broadcasts updates to registered listener callbacks.  Listeners are keyed
by job id so concurrent jobs never see each other's updates; a listener
registered under ``"*"`` receives every job's updates.

# ─── HOW PROGRESS TRACKING WORKS ──────────────────────────────────────
#
#   IngestionPipeline ──update()──→ ProgressTracker ──callback()──→ CLI printer
#                                                   ──→ (any other listener)
#
#   - Progress never moves backwards within one attempt.  A retry calls
#     reset() first, so the next attempt starts again from zero.
#   - Listener errors are caught and logged; one broken listener cannot
#     stall the pipeline or starve other listeners.
#   - Both sync and async callbacks are supported.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass

import structlog

from semantic_archive.models.job import IngestionStage
from semantic_archive.utils.logging import get_logger

ALL_JOBS = "*"


@dataclass
class _JobStatus:
    """Internal snapshot of one job's progress."""

    stage: IngestionStage = IngestionStage.QUEUED
    progress: float = 0.0
    message: str = ""


class ProgressTracker:
    """Tracks and broadcasts ingestion progress via callbacks."""

    def __init__(self) -> None:
        self._statuses: dict[str, _JobStatus] = {}
        self._listeners: dict[str, list[Callable]] = {}
        self._logger: structlog.BoundLogger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def update(
        self,
        job_id: str,
        stage: IngestionStage,
        progress: float,
        message: str = "",
    ) -> float:
        """Record a progress update and notify listeners.

        Parameters
        ----------
        job_id:
            The job to update.
        stage:
            The stage the job has reached.
        progress:
            Completion percentage (0.0 - 100.0).  Values below the job's
            current progress are raised to it.
        message:
            Human-readable status message.

        Returns
        -------
        float
            The progress value actually recorded.
        """
        progress = max(0.0, min(100.0, progress))
        current = self._statuses.get(job_id)
        if current is not None and progress < current.progress:
            progress = current.progress

        self._statuses[job_id] = _JobStatus(stage=stage, progress=progress, message=message)

        self._logger.debug(
            "progress_update",
            job_id=job_id,
            stage=stage.value,
            progress=round(progress, 1),
            message=message,
        )

        await self._notify_listeners(job_id, stage, progress, message)
        return progress

    def reset(self, job_id: str) -> None:
        """Start a new attempt for *job_id* at zero progress."""
        self._statuses[job_id] = _JobStatus()

    def forget(self, job_id: str) -> None:
        """Drop all state and listeners kept for *job_id*."""
        self._statuses.pop(job_id, None)
        self._listeners.pop(job_id, None)

    def register_listener(self, job_id: str, callback: Callable) -> None:
        """Register a callback for one job's updates, or ``"*"`` for all.

        The callback receives ``(job_id, stage, progress, message)`` and may
        be sync or async.
        """
        listeners = self._listeners.setdefault(job_id, [])
        if callback not in listeners:
            listeners.append(callback)
            self._logger.debug(
                "listener_registered",
                job_id=job_id,
                total_listeners=len(listeners),
            )

    def unregister_listener(self, job_id: str, callback: Callable) -> None:
        """Remove a previously registered callback."""
        listeners = self._listeners.get(job_id, [])
        if callback in listeners:
            listeners.remove(callback)

    def get_status(self, job_id: str) -> dict:
        """Return the current stage and progress for a job.

        Returns
        -------
        dict
            Keys: ``stage`` (:class:`str`), ``progress`` (:class:`float`),
            ``message`` (:class:`str`).  Zeroed defaults when the job has not
            been tracked.
        """
        status = self._statuses.get(job_id) or _JobStatus()
        return {
            "stage": status.stage.value,
            "progress": status.progress,
            "message": status.message,
        }

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _notify_listeners(
        self,
        job_id: str,
        stage: IngestionStage,
        progress: float,
        message: str,
    ) -> None:
        listeners = [*self._listeners.get(job_id, []), *self._listeners.get(ALL_JOBS, [])]
        for callback in listeners:
            try:
                result = callback(job_id, stage, progress, message)
                if asyncio.iscoroutine(result):
                    await result
            except Exception as exc:
                self._logger.warning(
                    "listener_callback_error",
                    job_id=job_id,
                    error=str(exc),
                    callback=getattr(callback, "__name__", repr(callback)),
                )
