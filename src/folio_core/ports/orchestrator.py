"""Protocol definitions and helpers for publish orchestration."""

from __future__ import annotations

from enum import StrEnum
from typing import Protocol, runtime_checkable

from pydantic import Field

from folio_schemas.base import BaseSchema
from folio_schemas.events import (
    JobCompletedData,
    JobEvent,
    JobFailedData,
    JobStartedData,
    StepEventData,
    StepEventSuffix,
)
from folio_schemas.logs import LogEntry
from folio_schemas.primitives import (
    AssignmentId,
    JobId,
    JobStatus,
    JsonValue,
    LogLevel,
    PublishStep,
    QuestionId,
    Timestamp,
)
from folio_schemas.progress import ProgressUpdate
from folio_schemas.responses import ErrorDetails, ErrorResponse


@runtime_checkable
class LogSinkProtocol(Protocol):
    """Protocol for emitting JSONL log entries."""

    async def emit_log(self, entry: LogEntry) -> None:
        """Emit a log entry."""
        raise NotImplementedError


@runtime_checkable
class ProgressSinkProtocol(Protocol):
    """Protocol for emitting progress updates."""

    async def emit_progress(self, update: ProgressUpdate) -> None:
        """Emit a progress update."""
        raise NotImplementedError


class PublishErrorCode(StrEnum):
    """Categorized error codes for publish failures."""

    PRECONDITION_FAILED = "precondition_failed"
    ASSIGNMENT_NOT_FOUND = "assignment_not_found"
    JOB_NOT_FOUND = "job_not_found"
    MODERATION_REJECTED = "moderation_rejected"
    STEP_FAILED = "step_failed"


class PublishErrorDetails(BaseSchema):
    """Detailed publish error context."""

    step: PublishStep | None = Field(None, description="Step associated with error")
    assignment_id: AssignmentId | None = Field(None, description="Assignment")
    job_id: JobId | None = Field(None, description="Publish job")
    question_id: QuestionId | None = Field(None, description="Question if applicable")
    field: str | None = Field(None, description="Offending field if applicable")
    reason: str | None = Field(None, description="Additional error context")


class PublishErrorInfo(BaseSchema):
    """Structured publish error data."""

    code: PublishErrorCode = Field(..., description="Error code")
    message: str = Field(..., min_length=1, description="Error message")
    details: PublishErrorDetails | None = Field(None, description="Error details")

    def to_error_response(self) -> ErrorResponse:
        """Convert publish error info to standard error response.

        Returns:
            ErrorResponse: Standard response error payload.
        """
        details: ErrorDetails | None = None
        if self.details is not None:
            if self.details.field is not None:
                details = ErrorDetails(field=self.details.field, provided=None)
            elif self.details.step is not None:
                details = ErrorDetails(field="step", provided=str(self.details.step))
        return ErrorResponse(code=str(self.code), message=self.message, details=details)


class PublishError(Exception):
    """Publish error with structured details."""

    def __init__(self, info: PublishErrorInfo) -> None:
        """Initialize the publish error.

        Args:
            info: Structured publish error information.
        """
        super().__init__(info.message)
        self.info = info


def build_job_started_log(
    timestamp: Timestamp,
    job_id: JobId,
    assignment_id: AssignmentId,
    steps: list[PublishStep],
    question_count: int,
) -> LogEntry:
    """Build a log entry for job start.

    Args:
        timestamp: ISO-8601 timestamp.
        job_id: Publish job identifier.
        assignment_id: Assignment being published.
        steps: Planned steps.
        question_count: Number of desired questions.

    Returns:
        LogEntry: Structured job start log entry.
    """
    return LogEntry(
        timestamp=timestamp,
        level=LogLevel.INFO,
        event=JobEvent.STARTED,
        job_id=job_id,
        step=None,
        message="Publish started",
        data=JobStartedData(
            assignment_id=assignment_id, steps=steps, question_count=question_count
        ).model_dump(exclude_none=True),
    )


def build_job_completed_log(
    timestamp: Timestamp, job_id: JobId, question_count: int
) -> LogEntry:
    """Build a log entry for job completion.

    Args:
        timestamp: ISO-8601 timestamp.
        job_id: Publish job identifier.
        question_count: Number of published questions.

    Returns:
        LogEntry: Structured job completion log entry.
    """
    return LogEntry(
        timestamp=timestamp,
        level=LogLevel.INFO,
        event=JobEvent.COMPLETED,
        job_id=job_id,
        step=None,
        message="Publish completed",
        data=JobCompletedData(
            status=JobStatus.COMPLETED, question_count=question_count
        ).model_dump(exclude_none=True),
    )


def build_job_failed_log(
    timestamp: Timestamp,
    job_id: JobId,
    step: PublishStep | None,
    message: str,
    error_code: str,
) -> LogEntry:
    """Build a log entry for job failure.

    Args:
        timestamp: ISO-8601 timestamp.
        job_id: Publish job identifier.
        step: Step that failed, if known.
        message: Failure message.
        error_code: Error code describing the failure.

    Returns:
        LogEntry: Structured job failure log entry.
    """
    return LogEntry(
        timestamp=timestamp,
        level=LogLevel.ERROR,
        event=JobEvent.FAILED,
        job_id=job_id,
        step=step,
        message=message,
        data=JobFailedData(step=step, error_code=error_code, why=message).model_dump(
            exclude_none=True
        ),
    )


def build_step_event_name(step: PublishStep, suffix: StepEventSuffix) -> str:
    """Build a step-specific event name.

    Args:
        step: Step name.
        suffix: Event suffix (e.g., started, completed).

    Returns:
        str: Event name in snake_case.
    """
    return f"{step}_{suffix}"


def build_step_log(
    timestamp: Timestamp,
    job_id: JobId,
    step: PublishStep,
    event_suffix: StepEventSuffix,
    message: str,
    percentage: int | None = None,
    level: LogLevel = LogLevel.INFO,
) -> LogEntry:
    """Build a log entry for a step lifecycle event.

    Args:
        timestamp: ISO-8601 timestamp.
        job_id: Publish job identifier.
        step: Step name.
        event_suffix: Event suffix (started/completed/skipped/failed).
        message: Log message.
        percentage: Percentage recorded for the event.
        level: Log level.

    Returns:
        LogEntry: Structured step log entry.
    """
    return LogEntry(
        timestamp=timestamp,
        level=level,
        event=build_step_event_name(step, event_suffix),
        job_id=job_id,
        step=step,
        message=message,
        data=StepEventData(step=step, percentage=percentage).model_dump(
            exclude_none=True
        ),
    )


def build_event_log(
    timestamp: Timestamp,
    job_id: JobId | None,
    step: PublishStep | None,
    event: str,
    message: str,
    data: dict[str, JsonValue] | None = None,
    level: LogLevel = LogLevel.INFO,
) -> LogEntry:
    """Build a log entry for an entity-level event.

    Args:
        timestamp: ISO-8601 timestamp.
        job_id: Publish job identifier, when known.
        step: Step emitting the event.
        event: Event name.
        message: Log message.
        data: Structured event data.
        level: Log level.

    Returns:
        LogEntry: Structured log entry.
    """
    return LogEntry(
        timestamp=timestamp,
        level=level,
        event=event,
        job_id=job_id,
        step=step,
        message=message,
        data=data,
    )
