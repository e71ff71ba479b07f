"""Structured outputs requested from the language model."""

from __future__ import annotations

from pydantic import Field

from folio_schemas.base import BaseSchema
from folio_schemas.primitives import QuestionId


class TranslatedChoice(BaseSchema):
    """Translated text of a single answer choice."""

    choice: str = Field(..., min_length=1, description="Translated choice text")
    feedback: str | None = Field(None, description="Translated feedback")


class TranslatedChoices(BaseSchema):
    """Translated answer choices in their original order."""

    choices: list[TranslatedChoice] = Field(
        ..., description="Translated choices, same order as the input"
    )


class DetectedLanguage(BaseSchema):
    """Language detected for a text."""

    language_code: str = Field(
        ..., description="ISO 639-1 code, or 'unknown' when undetermined"
    )


class ModerationVerdict(BaseSchema):
    """Approval decision for authored content."""

    allowed: bool = Field(..., description="Whether the content is acceptable")
    reason: str | None = Field(None, description="Reason when rejected")


class GradingContextLink(BaseSchema):
    """Questions a single question depends on for grading."""

    question_id: QuestionId = Field(..., description="Dependent question")
    context_question_ids: list[QuestionId] = Field(
        default_factory=list, description="Questions providing context"
    )


class GradingContextLinks(BaseSchema):
    """Grading context links for every question of an assignment."""

    links: list[GradingContextLink] = Field(
        default_factory=list, description="Links per question"
    )
