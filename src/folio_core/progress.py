"""Monotonic progress tracking for a single publish job."""

from __future__ import annotations

import asyncio
import math
from collections.abc import Callable

from folio_core.ports.orchestrator import ProgressSinkProtocol
from folio_core.ports.storage import JobStoreProtocol
from folio_schemas.config import ProgressConfig
from folio_schemas.events import ProgressEvent
from folio_schemas.jobs import JobUpdate, clamp_percentage
from folio_schemas.primitives import (
    PUBLISH_STEP_LABELS,
    JobId,
    JobStatus,
    PublishStep,
    Timestamp,
    now_timestamp,
)
from folio_schemas.progress import ProgressUpdate
from folio_schemas.publish import PublishResult


class ProgressTracker:
    """Converts step and translation completion into job percentages.

    Every write goes through a max-merge under a lock, so the recorded
    percentage never decreases while concurrent translation units finish out
    of order. One tracker belongs to one job run and is passed explicitly to
    the engines that report into it.
    """

    def __init__(
        self,
        job_id: JobId,
        job_store: JobStoreProtocol,
        config: ProgressConfig | None = None,
        progress_sink: ProgressSinkProtocol | None = None,
        clock: Callable[[], Timestamp] | None = None,
    ) -> None:
        """Initialize the tracker.

        Args:
            job_id: Job whose record is updated.
            job_store: Store holding the job record.
            config: Percentage checkpoints.
            progress_sink: Optional sink receiving every recorded update.
            clock: Optional timestamp provider.
        """
        self._job_id = job_id
        self._job_store = job_store
        self._config = config or ProgressConfig()
        self._progress_sink = progress_sink
        self._clock = clock or now_timestamp
        self._lock = asyncio.Lock()
        self._percentage = 0
        self._status = JobStatus.PENDING
        self._history: list[int] = []
        self._completed_translations = 0
        self._total_translations = 0

    @property
    def job_id(self) -> JobId:
        """Return the tracked job id."""
        return self._job_id

    @property
    def percentage(self) -> int:
        """Return the last recorded percentage."""
        return self._percentage

    @property
    def status(self) -> JobStatus:
        """Return the last recorded status."""
        return self._status

    @property
    def history(self) -> list[int]:
        """Return every recorded percentage, in write order."""
        return list(self._history)

    @property
    def completed_translations(self) -> int:
        """Return the number of finished translation units."""
        return self._completed_translations

    @property
    def total_translations(self) -> int:
        """Return the number of planned translation units."""
        return self._total_translations

    async def start_job(self, message: str = "Publishing started") -> None:
        """Move the job to in-progress."""
        async with self._lock:
            await self._record(
                self._percentage,
                message,
                ProgressEvent.JOB_STARTED,
                status=JobStatus.IN_PROGRESS,
            )

    async def start_step(self, step: PublishStep) -> None:
        """Record the start checkpoint of a step."""
        target = self._config.target_for(step)
        checkpoint = math.floor(target * self._config.checkpoint_ratio)
        async with self._lock:
            await self._record(
                checkpoint,
                f"Starting: {PUBLISH_STEP_LABELS[step]}",
                ProgressEvent.STEP_STARTED,
                step=step,
            )

    async def complete_step(self, step: PublishStep) -> None:
        """Record the completion target of a step."""
        async with self._lock:
            await self._record(
                self._config.target_for(step),
                f"{PUBLISH_STEP_LABELS[step]} completed",
                ProgressEvent.STEP_COMPLETED,
                step=step,
            )

    async def skip_step(self, step: PublishStep) -> None:
        """Record the completion target of a skipped step."""
        async with self._lock:
            await self._record(
                self._config.target_for(step),
                f"{PUBLISH_STEP_LABELS[step]} skipped",
                ProgressEvent.STEP_SKIPPED,
                step=step,
            )

    async def begin_translations(self, total: int) -> None:
        """Reset the translation counter for a batch of units.

        Raises:
            ValueError: If total is negative.
        """
        if total < 0:
            raise ValueError("total must not be negative")
        async with self._lock:
            self._completed_translations = 0
            self._total_translations = total

    async def translation_completed(self, step: PublishStep) -> None:
        """Count one finished translation unit.

        The derived percentage is recorded only when it exceeds the last
        recorded value.
        """
        async with self._lock:
            if self._completed_translations < self._total_translations:
                self._completed_translations += 1
            if self._total_translations == 0:
                return
            ratio = self._completed_translations / self._total_translations
            value = self._config.translation_base_percentage + math.floor(
                ratio * self._config.translation_range
            )
            if value <= self._percentage:
                return
            await self._record(
                value,
                (
                    f"Translating content ({self._completed_translations}/"
                    f"{self._total_translations})"
                ),
                ProgressEvent.TRANSLATION_PROGRESS,
                step=step,
                with_counts=True,
            )

    async def complete(self, result: PublishResult) -> None:
        """Mark the job completed at 100%."""
        async with self._lock:
            await self._record(
                100,
                "Publishing completed",
                ProgressEvent.JOB_COMPLETED,
                status=JobStatus.COMPLETED,
                result=result,
            )

    async def fail(self, message: str, result: PublishResult) -> None:
        """Mark the job failed, keeping the last recorded percentage."""
        async with self._lock:
            await self._record(
                self._percentage,
                message,
                ProgressEvent.JOB_FAILED,
                status=JobStatus.FAILED,
                result=result,
            )

    async def _record(
        self,
        percentage: int,
        message: str,
        event: ProgressEvent,
        *,
        step: PublishStep | None = None,
        status: JobStatus | None = None,
        result: PublishResult | None = None,
        with_counts: bool = False,
    ) -> None:
        merged = max(self._percentage, clamp_percentage(percentage))
        update = JobUpdate(
            status=status, progress=message, percentage=merged, result=result
        )
        await self._job_store.update_job(self._job_id, update)
        self._percentage = merged
        if status is not None:
            self._status = status
        self._history.append(merged)
        if self._progress_sink is None:
            return
        await self._progress_sink.emit_progress(
            ProgressUpdate(
                job_id=self._job_id,
                event=event,
                timestamp=self._clock(),
                step=step,
                status=self._status,
                percentage=merged,
                message=update.progress,
                completed_translations=(
                    self._completed_translations if with_counts else None
                ),
                total_translations=self._total_translations if with_counts else None,
            )
        )
