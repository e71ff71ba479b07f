"""Storage port definitions for assignments, questions, translations and jobs."""

from __future__ import annotations

from enum import StrEnum
from typing import Protocol, runtime_checkable

from pydantic import Field

from folio_schemas.assignments import (
    Assignment,
    AssignmentAuthor,
    AssignmentTranslation,
    AssignmentTranslationFields,
    AssignmentUpdate,
    Choice,
    Question,
    QuestionFields,
    QuestionWithVariants,
    Translation,
    TranslationContent,
    Variant,
    VariantFields,
)
from folio_schemas.base import BaseSchema
from folio_schemas.jobs import Job, JobUpdate
from folio_schemas.logs import LogEntry
from folio_schemas.primitives import (
    AssignmentId,
    JobId,
    LanguageCode,
    QuestionId,
    TranslationId,
    UserId,
    VariantId,
)
from folio_schemas.responses import ErrorDetails, ErrorResponse


class StorageErrorCode(StrEnum):
    """Categorized error codes for storage operations."""

    NOT_FOUND = "not_found"
    IO_ERROR = "io_error"
    SERIALIZATION_ERROR = "serialization_error"
    VALIDATION_ERROR = "validation_error"


class StorageErrorDetails(BaseSchema):
    """Detailed storage error context."""

    operation: str | None = Field(None, description="Storage operation name")
    entity: str | None = Field(None, description="Entity kind")
    entity_id: int | None = Field(None, description="Entity identifier")
    path: str | None = Field(None, description="Filesystem path")
    reason: str | None = Field(None, description="Additional error context")


class StorageErrorInfo(BaseSchema):
    """Structured storage error data."""

    code: StorageErrorCode = Field(..., description="Storage error code")
    message: str = Field(..., min_length=1, description="Error message")
    details: StorageErrorDetails | None = Field(None, description="Error details")

    def to_error_response(self) -> ErrorResponse:
        """Convert storage error info to the standard error response schema.

        Returns:
            ErrorResponse: Standard response error payload.
        """
        details: ErrorDetails | None = None
        if self.details is not None:
            details = ErrorDetails(
                field=self.details.operation,
                provided=self.details.path,
                valid_options=None,
            )
        return ErrorResponse(code=str(self.code), message=self.message, details=details)


class StorageError(Exception):
    """Storage error with structured details."""

    def __init__(self, info: StorageErrorInfo) -> None:
        """Initialize the storage error.

        Args:
            info: Structured storage error information.
        """
        super().__init__(info.message)
        self.info = info


def build_not_found_error(operation: str, entity: str, entity_id: int) -> StorageError:
    """Build a not-found storage error for a missing entity.

    Args:
        operation: Storage operation name.
        entity: Entity kind.
        entity_id: Missing entity identifier.

    Returns:
        StorageError: Error ready to raise.
    """
    return StorageError(
        StorageErrorInfo(
            code=StorageErrorCode.NOT_FOUND,
            message=f"{entity} {entity_id} not found",
            details=StorageErrorDetails(
                operation=operation, entity=entity, entity_id=entity_id
            ),
        )
    )


@runtime_checkable
class AssignmentStoreProtocol(Protocol):
    """Protocol for assignment, authorship and assignment translation rows."""

    async def get_assignment(self, assignment_id: AssignmentId) -> Assignment | None:
        """Load an assignment if present."""
        raise NotImplementedError

    async def update_assignment(
        self, assignment_id: AssignmentId, update: AssignmentUpdate
    ) -> Assignment:
        """Apply the explicitly set fields of an update."""
        raise NotImplementedError

    async def has_author(self, assignment_id: AssignmentId, user_id: UserId) -> bool:
        """Return whether the user is recorded as an author."""
        raise NotImplementedError

    async def add_author(self, author: AssignmentAuthor) -> None:
        """Record authorship."""
        raise NotImplementedError

    async def get_assignment_translation(
        self, assignment_id: AssignmentId, language_code: LanguageCode
    ) -> AssignmentTranslation | None:
        """Load the assignment translation row for a language."""
        raise NotImplementedError

    async def create_assignment_translation(
        self,
        assignment_id: AssignmentId,
        language_code: LanguageCode,
        fields: AssignmentTranslationFields,
    ) -> AssignmentTranslation:
        """Create an assignment translation row."""
        raise NotImplementedError

    async def update_assignment_translation(
        self, translation_id: TranslationId, fields: AssignmentTranslationFields
    ) -> AssignmentTranslation:
        """Update the explicitly set fields of an assignment translation row."""
        raise NotImplementedError


@runtime_checkable
class QuestionStoreProtocol(Protocol):
    """Protocol for question and variant rows."""

    async def list_active_questions(
        self, assignment_id: AssignmentId
    ) -> list[QuestionWithVariants]:
        """List non-deleted questions with their non-deleted variants."""
        raise NotImplementedError

    async def create_question(
        self, assignment_id: AssignmentId, fields: QuestionFields
    ) -> Question:
        """Create a question and assign its persisted id."""
        raise NotImplementedError

    async def update_question(
        self, question_id: QuestionId, fields: QuestionFields
    ) -> Question:
        """Overwrite a question's scalar fields."""
        raise NotImplementedError

    async def soft_delete_question(self, question_id: QuestionId) -> None:
        """Mark a question deleted."""
        raise NotImplementedError

    async def set_grading_context(
        self, question_id: QuestionId, linked_question_ids: list[QuestionId]
    ) -> None:
        """Persist grading-context links for a question."""
        raise NotImplementedError

    async def create_variant(
        self, question_id: QuestionId, fields: VariantFields, content_hash: str
    ) -> Variant:
        """Create a variant and assign its persisted id."""
        raise NotImplementedError

    async def update_variant(
        self, variant_id: VariantId, fields: VariantFields, content_hash: str
    ) -> Variant:
        """Overwrite a variant's fields."""
        raise NotImplementedError

    async def soft_delete_variant(self, variant_id: VariantId) -> None:
        """Mark a variant deleted."""
        raise NotImplementedError


@runtime_checkable
class TranslationStoreProtocol(Protocol):
    """Protocol for question and variant translation rows."""

    async def find_translation(
        self,
        language_code: LanguageCode,
        untranslated_text: str,
        untranslated_choices: list[Choice] | None,
    ) -> Translation | None:
        """Find any row with matching source content, regardless of owner."""
        raise NotImplementedError

    async def get_translation(
        self,
        question_id: QuestionId,
        variant_id: VariantId | None,
        language_code: LanguageCode,
    ) -> Translation | None:
        """Load the latest row owned by a question or variant for a language."""
        raise NotImplementedError

    async def create_translation(
        self,
        question_id: QuestionId,
        variant_id: VariantId | None,
        content: TranslationContent,
    ) -> Translation:
        """Append a translation row bound to its owner."""
        raise NotImplementedError


@runtime_checkable
class JobStoreProtocol(Protocol):
    """Protocol for publish job records."""

    async def create_job(self, assignment_id: AssignmentId, user_id: UserId) -> Job:
        """Create a pending job."""
        raise NotImplementedError

    async def get_job(self, job_id: JobId) -> Job | None:
        """Load a job if present."""
        raise NotImplementedError

    async def update_job(self, job_id: JobId, update: JobUpdate) -> Job:
        """Apply the explicitly set fields of a job update."""
        raise NotImplementedError


@runtime_checkable
class LogStoreProtocol(Protocol):
    """Protocol for persisting JSONL log entries."""

    async def append_log(self, entry: LogEntry) -> None:
        """Append a single log entry."""
        raise NotImplementedError
