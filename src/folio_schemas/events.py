"""Event taxonomy and structured payloads for publish observability."""

from __future__ import annotations

from enum import StrEnum

from pydantic import Field

from folio_schemas.base import BaseSchema
from folio_schemas.primitives import (
    JobStatus,
    LanguageCode,
    PublishStep,
    QuestionId,
    VariantId,
)


class JobEvent(StrEnum):
    """Event names for publish job lifecycle."""

    STARTED = "job_started"
    COMPLETED = "job_completed"
    FAILED = "job_failed"


class StepEventSuffix(StrEnum):
    """Suffixes for publish step lifecycle events."""

    STARTED = "started"
    COMPLETED = "completed"
    SKIPPED = "skipped"
    FAILED = "failed"


class ReconcileEvent(StrEnum):
    """Event names for question and variant reconciliation."""

    QUESTION_CREATED = "question_created"
    QUESTION_SOFT_DELETED = "question_soft_deleted"
    VARIANT_CREATED = "variant_created"
    VARIANT_SOFT_DELETED = "variant_soft_deleted"


class TranslationEvent(StrEnum):
    """Event names for translation work."""

    SKIPPED = "translation_skipped"
    REUSED = "translation_reused"
    ASSIGNMENT_UPDATED = "assignment_translation_updated"


class ProgressEvent(StrEnum):
    """Event names for progress updates."""

    JOB_STARTED = "job_started"
    JOB_COMPLETED = "job_completed"
    JOB_FAILED = "job_failed"
    STEP_STARTED = "step_started"
    STEP_COMPLETED = "step_completed"
    STEP_SKIPPED = "step_skipped"
    TRANSLATION_PROGRESS = "translation_progress"


class JobStartedData(BaseSchema):
    """Payload for job start events."""

    assignment_id: int = Field(..., description="Assignment being published")
    steps: list[PublishStep] = Field(..., description="Planned steps")
    question_count: int = Field(..., ge=0, description="Desired question count")


class JobCompletedData(BaseSchema):
    """Payload for job completion events."""

    status: JobStatus = Field(..., description="Final job status")
    question_count: int = Field(..., ge=0, description="Published question count")


class JobFailedData(BaseSchema):
    """Payload for job failure events."""

    step: PublishStep | None = Field(None, description="Failing step")
    error_code: str = Field(..., description="Error code describing the failure")
    why: str = Field(..., description="Failure reason")


class StepEventData(BaseSchema):
    """Payload for step lifecycle events."""

    step: PublishStep = Field(..., description="Step name")
    percentage: int | None = Field(None, ge=0, le=100, description="Checkpoint")


class TranslationSkippedData(BaseSchema):
    """Payload for skipped translation units."""

    question_id: QuestionId = Field(..., description="Owning question")
    variant_id: VariantId | None = Field(None, description="Owning variant")
    language_code: LanguageCode | None = Field(None, description="Target language")
    reason: str = Field(..., description="Skip reason")
