"""Translation request context and per-unit outcomes."""

from __future__ import annotations

from enum import StrEnum

from pydantic import Field

from folio_schemas.base import BaseSchema
from folio_schemas.primitives import (
    LanguageCode,
    QuestionId,
    TranslationId,
    VariantId,
)


class TranslationSubject(StrEnum):
    """Kind of content handed to the translation provider."""

    QUESTION = "question"
    VARIANT = "variant"
    CHOICES = "choices"
    ASSIGNMENT_NAME = "assignment_name"
    ASSIGNMENT_INTRODUCTION = "assignment_introduction"
    ASSIGNMENT_INSTRUCTIONS = "assignment_instructions"
    ASSIGNMENT_GRADING_CRITERIA = "assignment_grading_criteria"


class TranslationContext(BaseSchema):
    """Context passed along with every provider call."""

    subject: TranslationSubject = Field(..., description="Kind of content")
    source_language: str = Field(
        ..., min_length=1, description="Detected source language"
    )
    assignment_name: str | None = Field(None, description="Owning assignment name")


class TranslationOutcomeKind(StrEnum):
    """How a single (entity, language) unit was resolved."""

    TRANSLATED = "translated"
    REUSED = "reused"
    ALREADY_PRESENT = "already_present"
    IDENTITY = "identity"
    SKIPPED_UNKNOWN = "skipped_unknown"


class TranslationOutcome(BaseSchema):
    """Result of one (entity, language) translation unit."""

    question_id: QuestionId = Field(..., description="Owning question")
    variant_id: VariantId | None = Field(None, description="Owning variant")
    language_code: LanguageCode = Field(..., description="Target language")
    kind: TranslationOutcomeKind = Field(..., description="Resolution kind")
    translation_id: TranslationId | None = Field(
        None, description="Persisted row, when one was written"
    )
