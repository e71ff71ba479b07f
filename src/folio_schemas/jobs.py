"""Publish job records."""

from __future__ import annotations

from pydantic import Field, field_validator

from folio_schemas.base import BaseSchema
from folio_schemas.primitives import (
    PROGRESS_MESSAGE_MAX_LENGTH,
    AssignmentId,
    JobId,
    JobStatus,
    Timestamp,
    UserId,
)
from folio_schemas.publish import PublishResult


def clamp_percentage(value: int) -> int:
    """Clamp a percentage into the 0-100 range.

    Returns:
        int: Clamped percentage.
    """
    return max(0, min(100, value))


def truncate_progress(message: str) -> str:
    """Truncate a progress message to the stored maximum length.

    Returns:
        str: Message of at most PROGRESS_MESSAGE_MAX_LENGTH characters.
    """
    return message[:PROGRESS_MESSAGE_MAX_LENGTH]


class Job(BaseSchema):
    """Persisted publish job."""

    id: JobId = Field(..., description="Job identifier")
    assignment_id: AssignmentId = Field(..., description="Assignment being published")
    user_id: UserId = Field(..., description="Author who requested the publish")
    status: JobStatus = Field(JobStatus.PENDING, description="Job status")
    progress: str = Field(
        "Job created",
        max_length=PROGRESS_MESSAGE_MAX_LENGTH,
        description="Human-readable progress message",
    )
    percentage: int = Field(0, ge=0, le=100, description="Percent complete")
    result: PublishResult | None = Field(None, description="Terminal result payload")
    created_at: Timestamp = Field(..., description="Creation timestamp")
    updated_at: Timestamp = Field(..., description="Last update timestamp")


class JobUpdate(BaseSchema):
    """Partial update applied to a job record."""

    status: JobStatus | None = Field(None, description="New status")
    progress: str | None = Field(None, description="New progress message")
    percentage: int | None = Field(None, description="New percentage")
    result: PublishResult | None = Field(None, description="Terminal result payload")

    @field_validator("percentage")
    @classmethod
    def _clamp_percentage(cls, value: int | None) -> int | None:
        if value is None:
            return None
        return clamp_percentage(value)

    @field_validator("progress")
    @classmethod
    def _truncate_progress(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return truncate_progress(value)
