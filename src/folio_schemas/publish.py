"""Publish request, result and handle schemas."""

from __future__ import annotations

from pydantic import Field, model_validator

from folio_schemas.assignments import (
    AssignmentSettingsFields,
    QuestionFields,
    QuestionWithVariants,
    VariantFields,
)
from folio_schemas.base import BaseSchema
from folio_schemas.primitives import (
    AssignmentId,
    DraftId,
    JobId,
    JobStatus,
    QuestionId,
)


class AssignmentSettings(AssignmentSettingsFields):
    """Desired assignment settings.

    Only fields explicitly provided are written to the assignment.
    """


class VariantDraft(VariantFields):
    """Desired state of a question variant."""

    id: DraftId | None = Field(
        None, description="Persisted variant id, or a provisional value"
    )


class QuestionDraft(QuestionFields):
    """Desired state of a question."""

    id: DraftId = Field(..., description="Persisted question id or provisional id")
    variants: list[VariantDraft] = Field(
        default_factory=list, description="Desired variants"
    )


class PublishRequest(BaseSchema):
    """Desired assignment state submitted for publishing."""

    settings: AssignmentSettings = Field(..., description="Assignment settings")
    questions: list[QuestionDraft] = Field(
        default_factory=list, description="Questions in desired order"
    )

    @model_validator(mode="after")
    def validate_unique_question_ids(self) -> PublishRequest:
        """Ensure question ids are unique within the request.

        Returns:
            PublishRequest: Validated request.

        Raises:
            ValueError: If a question id appears more than once.
        """
        ids = [question.id for question in self.questions]
        if len(set(ids)) != len(ids):
            raise ValueError("question ids must be unique")
        return self


class PublishResult(BaseSchema):
    """Result payload stored on a terminal job."""

    assignment_id: AssignmentId = Field(..., description="Published assignment")
    success: bool = Field(..., description="Whether the publish succeeded")
    questions: list[QuestionWithVariants] | None = Field(
        None, description="Final active questions in published order"
    )
    question_order: list[QuestionId] | None = Field(
        None, description="Persisted question ordering"
    )
    error: str | None = Field(None, description="Failure message")

    @model_validator(mode="after")
    def validate_outcome(self) -> PublishResult:
        """Ensure failures carry an error and successes carry questions.

        Returns:
            PublishResult: Validated result.

        Raises:
            ValueError: If the payload does not match the outcome.
        """
        if self.success:
            if self.questions is None:
                raise ValueError("successful results must include questions")
            if self.error is not None:
                raise ValueError("successful results must not include an error")
        elif not self.error:
            raise ValueError("failed results must include an error")
        return self


class PublishHandle(BaseSchema):
    """Handle returned as soon as a publish job is scheduled."""

    job_id: JobId = Field(..., description="Publish job identifier")
    message: str = Field(..., min_length=1, description="Human-readable status")


class JobStatusView(BaseSchema):
    """Polling view of a publish job."""

    job_id: JobId = Field(..., description="Publish job identifier")
    status: JobStatus = Field(..., description="Job status")
    progress: str = Field(..., description="Progress message")
    percentage: int = Field(..., ge=0, le=100, description="Percent complete")
    result: PublishResult | None = Field(
        None, description="Result payload once the job is terminal"
    )
    done: bool = Field(..., description="Whether the job reached a terminal state")
