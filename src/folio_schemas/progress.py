"""Progress update schema for publish jobs."""

from __future__ import annotations

from pydantic import Field, model_validator

from folio_schemas.base import BaseSchema
from folio_schemas.events import ProgressEvent
from folio_schemas.primitives import JobId, JobStatus, PublishStep, Timestamp


class ProgressUpdate(BaseSchema):
    """Incremental progress update suitable for logs or streaming."""

    job_id: JobId = Field(..., description="Publish job identifier")
    event: ProgressEvent = Field(..., description="Progress event name in snake_case")
    timestamp: Timestamp = Field(..., description="Update timestamp")
    step: PublishStep | None = Field(None, description="Associated step")
    status: JobStatus = Field(..., description="Job status at this update")
    percentage: int = Field(..., ge=0, le=100, description="Recorded percentage")
    message: str | None = Field(None, description="Progress message")
    completed_translations: int | None = Field(
        None, ge=0, description="Completed translation units"
    )
    total_translations: int | None = Field(
        None, ge=0, description="Planned translation units"
    )

    @model_validator(mode="after")
    def _validate_payload(self) -> ProgressUpdate:
        step_events = {
            ProgressEvent.STEP_STARTED,
            ProgressEvent.STEP_COMPLETED,
            ProgressEvent.STEP_SKIPPED,
            ProgressEvent.TRANSLATION_PROGRESS,
        }
        if self.event in step_events and self.step is None:
            raise ValueError("step is required for step progress events")
        if (self.completed_translations is None) != (self.total_translations is None):
            raise ValueError(
                "completed_translations and total_translations must be set together"
            )
        if (
            self.completed_translations is not None
            and self.total_translations is not None
            and self.completed_translations > self.total_translations
        ):
            raise ValueError("completed_translations cannot exceed total_translations")
        return self
