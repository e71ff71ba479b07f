"""Fire-and-forget publish dispatch and job status polling."""

from __future__ import annotations

import asyncio
from collections.abc import Callable

from folio_core.orchestrator import PublishOrchestrator
from folio_core.ports.orchestrator import (
    LogSinkProtocol,
    PublishError,
    PublishErrorCode,
    PublishErrorDetails,
    PublishErrorInfo,
    build_event_log,
)
from folio_core.ports.storage import JobStoreProtocol
from folio_schemas.jobs import Job
from folio_schemas.primitives import (
    TERMINAL_JOB_STATUSES,
    AssignmentId,
    JobId,
    LogLevel,
    Timestamp,
    UserId,
    now_timestamp,
)
from folio_schemas.publish import JobStatusView, PublishHandle, PublishRequest


class PublishService:
    """Schedules publish runs as independent tasks and reports their status."""

    def __init__(
        self,
        orchestrator: PublishOrchestrator,
        job_store: JobStoreProtocol,
        log_sink: LogSinkProtocol | None = None,
        clock: Callable[[], Timestamp] | None = None,
    ) -> None:
        """Initialize the service.

        Args:
            orchestrator: Orchestrator executing publish runs.
            job_store: Store holding job records.
            log_sink: Optional sink for background task failures.
            clock: Optional timestamp provider.
        """
        self._orchestrator = orchestrator
        self._job_store = job_store
        self._log_sink = log_sink
        self._clock = clock or now_timestamp
        self._tasks: dict[JobId, asyncio.Task[None]] = {}

    async def publish_assignment(
        self,
        assignment_id: AssignmentId,
        request: PublishRequest,
        user_id: UserId,
    ) -> PublishHandle:
        """Validate a publish request, create its job and start it.

        Returns immediately; the run continues as a background task.

        Args:
            assignment_id: Assignment to publish.
            request: Desired assignment state.
            user_id: Author requesting the publish.

        Returns:
            PublishHandle: Job id and status message.
        """
        await self._orchestrator.check_preconditions(assignment_id, request)
        job = await self._job_store.create_job(assignment_id, user_id)
        task = asyncio.create_task(
            self._run_job(job.id, assignment_id, request, user_id),
            name=f"publish-job-{job.id}",
        )
        self._tasks[job.id] = task
        task.add_done_callback(lambda _: self._tasks.pop(job.id, None))
        return PublishHandle(job_id=job.id, message="Publishing started")

    async def get_job_status(self, job_id: JobId) -> JobStatusView:
        """Return the current status of a job.

        Args:
            job_id: Job to look up.

        Returns:
            JobStatusView: Status, progress message, percentage and result.

        Raises:
            PublishError: If the job does not exist.
        """
        job = await self._job_store.get_job(job_id)
        if job is None:
            raise PublishError(
                PublishErrorInfo(
                    code=PublishErrorCode.JOB_NOT_FOUND,
                    message=f"Job {job_id} not found",
                    details=PublishErrorDetails(job_id=job_id),
                )
            )
        return build_status_view(job)

    async def wait_for_job(self, job_id: JobId) -> JobStatusView:
        """Wait until a scheduled run finishes and return its status.

        Returns:
            JobStatusView: Status after the run settles.
        """
        task = self._tasks.get(job_id)
        if task is not None:
            await asyncio.wait({task})
        return await self.get_job_status(job_id)

    async def drain(self) -> None:
        """Wait for every scheduled run to finish."""
        while self._tasks:
            await asyncio.wait(set(self._tasks.values()))

    @property
    def running_jobs(self) -> list[JobId]:
        """Return ids of runs that have not finished."""
        return sorted(self._tasks)

    async def _run_job(
        self,
        job_id: JobId,
        assignment_id: AssignmentId,
        request: PublishRequest,
        user_id: UserId,
    ) -> None:
        try:
            await self._orchestrator.run(job_id, assignment_id, request, user_id)
        except Exception as exc:
            # The job record already carries the failure for pollers.
            await self._log_background_failure(job_id, exc)

    async def _log_background_failure(self, job_id: JobId, exc: Exception) -> None:
        if self._log_sink is None:
            return
        await self._log_sink.emit_log(
            build_event_log(
                self._clock(),
                job_id,
                None,
                "publish_task_failed",
                f"Publish task ended with an error: {exc}",
                data={"error_type": type(exc).__name__},
                level=LogLevel.ERROR,
            )
        )


def build_status_view(job: Job) -> JobStatusView:
    """Build the polling view of a job record.

    Returns:
        JobStatusView: Status view.
    """
    return JobStatusView(
        job_id=job.id,
        status=job.status,
        progress=job.progress,
        percentage=job.percentage,
        result=job.result,
        done=job.status in TERMINAL_JOB_STATUSES,
    )
