"""Persisted assignment, question, variant and translation entities."""

from __future__ import annotations

import json
from typing import Annotated, Literal

from pydantic import Field, field_validator, model_validator

from folio_schemas.base import BaseSchema
from folio_schemas.primitives import (
    CHOICE_QUESTION_TYPES,
    AssignmentId,
    DisplayOrder,
    LanguageCode,
    QuestionDisplay,
    QuestionId,
    QuestionType,
    ResponseType,
    ScoringType,
    Timestamp,
    TranslationId,
    UserId,
    VariantId,
    VariantType,
)


class Choice(BaseSchema):
    """Single answer option for a choice question."""

    choice: str = Field(..., description="Choice text shown to learners")
    is_correct: bool = Field(False, description="Whether the choice is correct")
    points: float = Field(0, description="Points awarded when selected")
    feedback: str | None = Field(None, description="Feedback shown after answering")


class Criteria(BaseSchema):
    """Scoring criterion with its point value."""

    id: int = Field(..., ge=0, description="Criterion identifier within a rubric")
    points: float = Field(..., description="Points for meeting the criterion")
    description: str = Field(..., min_length=1, description="Criterion description")


class Rubric(BaseSchema):
    """Rubric question with the criteria used to grade it."""

    rubric_question: str = Field(..., min_length=1, description="Rubric prompt")
    criteria: list[Criteria] = Field(
        default_factory=list, description="Criteria for this rubric"
    )


class CriteriaBasedScoring(BaseSchema):
    """Scoring by rubrics with explicit criteria."""

    type: Literal[ScoringType.CRITERIA_BASED] = Field(..., description="Scoring type")
    rubrics: list[Rubric] = Field(default_factory=list, description="Rubrics")
    show_rubrics_to_learner: bool = Field(
        False, description="Show rubrics to learners before submission"
    )


class LossPerMistakeScoring(BaseSchema):
    """Scoring by deducting points per mistake."""

    type: Literal[ScoringType.LOSS_PER_MISTAKE] = Field(
        ..., description="Scoring type"
    )
    criteria: list[Criteria] = Field(
        default_factory=list, description="Mistake criteria"
    )


class AiGradedScoring(BaseSchema):
    """Scoring delegated to an AI grader guided by rubrics."""

    type: Literal[ScoringType.AI_GRADED] = Field(..., description="Scoring type")
    rubrics: list[Rubric] = Field(default_factory=list, description="Rubrics")
    show_rubrics_to_learner: bool = Field(
        False, description="Show rubrics to learners before submission"
    )


type Scoring = Annotated[
    CriteriaBasedScoring | LossPerMistakeScoring | AiGradedScoring,
    Field(discriminator="type"),
]


def parse_choices(value: object) -> object:
    """Parse choices that arrive serialized as a JSON string.

    Args:
        value: Raw choices value.

    Returns:
        object: Parsed choices list, or the original value.

    Raises:
        ValueError: If the string is not valid JSON.
    """
    if isinstance(value, str):
        if not value.strip():
            return None
        try:
            return json.loads(value)
        except json.JSONDecodeError as exc:
            raise ValueError(f"choices must be valid JSON: {exc.msg}") from exc
    return value


class QuestionFields(BaseSchema):
    """Scalar question fields shared by drafts and persisted questions."""

    question: str = Field(..., min_length=1, description="Question text")
    type: QuestionType = Field(..., description="Question type")
    total_points: float = Field(0, ge=0, description="Points available")
    choices: list[Choice] | None = Field(None, description="Ordered answer choices")
    scoring: Scoring | None = Field(None, description="Scoring specification")
    answer: bool | None = Field(None, description="Answer for TRUE_FALSE questions")
    max_words: int | None = Field(None, ge=1, description="Maximum response words")
    max_characters: int | None = Field(
        None, ge=1, description="Maximum response characters"
    )
    response_type: ResponseType | None = Field(
        None, description="Expected response format"
    )
    randomized_choices: bool | None = Field(
        None, description="Shuffle choices for learners"
    )

    @field_validator("choices", mode="before")
    @classmethod
    def _parse_choices(cls, value: object) -> object:
        return parse_choices(value)

    @model_validator(mode="after")
    def validate_choices_for_type(self) -> QuestionFields:
        """Ensure choices are present exactly for choice question types.

        Returns:
            QuestionFields: Validated question fields.

        Raises:
            ValueError: If choices do not match the question type.
        """
        if self.type in CHOICE_QUESTION_TYPES:
            if not self.choices:
                raise ValueError(f"{self.type} questions require at least one choice")
        elif self.choices:
            raise ValueError(f"{self.type} questions must not define choices")
        return self


class VariantFields(BaseSchema):
    """Scalar variant fields shared by drafts and persisted variants."""

    variant_content: str = Field(..., min_length=1, description="Variant text")
    choices: list[Choice] | None = Field(None, description="Ordered answer choices")
    scoring: Scoring | None = Field(None, description="Scoring specification")
    max_words: int | None = Field(None, ge=1, description="Maximum response words")
    max_characters: int | None = Field(
        None, ge=1, description="Maximum response characters"
    )
    randomized_choices: bool | None = Field(
        None, description="Shuffle choices for learners"
    )
    variant_type: VariantType = Field(
        VariantType.REWORDED, description="Variant kind"
    )

    @field_validator("choices", mode="before")
    @classmethod
    def _parse_choices(cls, value: object) -> object:
        return parse_choices(value)


class Question(QuestionFields):
    """Persisted question."""

    id: QuestionId = Field(..., description="Persisted question identifier")
    assignment_id: AssignmentId = Field(..., description="Owning assignment")
    is_deleted: bool = Field(False, description="Soft-delete flag")
    grading_context_question_ids: list[QuestionId] = Field(
        default_factory=list,
        description="Earlier questions whose answers inform grading",
    )


class Variant(VariantFields):
    """Persisted question variant."""

    id: VariantId = Field(..., description="Persisted variant identifier")
    question_id: QuestionId = Field(..., description="Owning question")
    content_hash: str = Field(
        ..., min_length=1, description="Hash of the normalized variant content"
    )
    is_deleted: bool = Field(False, description="Soft-delete flag")


class QuestionWithVariants(Question):
    """Persisted question together with its active variants."""

    variants: list[Variant] = Field(
        default_factory=list, description="Active variants"
    )


class AssignmentSettingsFields(BaseSchema):
    """Author-editable assignment settings."""

    name: str | None = Field(None, description="Assignment name")
    introduction: str | None = Field(None, description="Assignment introduction")
    instructions: str | None = Field(None, description="Learner instructions")
    grading_criteria_overview: str | None = Field(
        None, description="Overview of grading criteria"
    )
    num_attempts: int | None = Field(
        None, ge=-1, description="Allowed attempts, -1 for unlimited"
    )
    attempts_before_cool_down: int | None = Field(
        None, ge=1, description="Attempts allowed before a cool-down"
    )
    retake_attempt_cool_down_minutes: int | None = Field(
        None, ge=0, description="Cool-down length in minutes"
    )
    alloted_time_minutes: int | None = Field(
        None, ge=1, description="Time limit in minutes"
    )
    time_estimate_minutes: int | None = Field(
        None, ge=1, description="Estimated completion time in minutes"
    )
    passing_grade: int | None = Field(
        None, ge=0, le=100, description="Passing grade percentage"
    )
    display_order: DisplayOrder | None = Field(None, description="Question ordering")
    question_display: QuestionDisplay | None = Field(
        None, description="Question paging"
    )
    graded: bool | None = Field(None, description="Whether attempts are graded")
    show_assignment_score: bool | None = Field(
        None, description="Show the overall score to learners"
    )
    show_question_score: bool | None = Field(
        None, description="Show per-question scores to learners"
    )
    show_submission_feedback: bool | None = Field(
        None, description="Show feedback after submission"
    )
    show_questions: bool | None = Field(
        None, description="Show questions after submission"
    )


class Assignment(AssignmentSettingsFields):
    """Persisted assignment."""

    id: AssignmentId = Field(..., description="Assignment identifier")
    language_code: LanguageCode | None = Field(
        None, description="Language detected from the introduction"
    )
    published: bool = Field(False, description="Whether the assignment is published")
    question_order: list[QuestionId] = Field(
        default_factory=list, description="Canonical question ordering"
    )
    updated_at: Timestamp | None = Field(None, description="Last update timestamp")


class AssignmentAuthor(BaseSchema):
    """Authorship record linking a user to an assignment."""

    assignment_id: AssignmentId = Field(..., description="Assignment identifier")
    user_id: UserId = Field(..., description="Author user identifier")


class TranslationContent(BaseSchema):
    """Source and translated content for a question or variant."""

    language_code: LanguageCode = Field(..., description="Target language code")
    untranslated_text: str = Field(..., description="Normalized source text")
    untranslated_choices: list[Choice] | None = Field(
        None, description="Source choices"
    )
    translated_text: str = Field(..., description="Translated text")
    translated_choices: list[Choice] | None = Field(
        None, description="Translated choices, same length and order as source"
    )


class Translation(TranslationContent):
    """Persisted question or variant translation row."""

    id: TranslationId = Field(..., description="Translation identifier")
    question_id: QuestionId = Field(..., description="Owning question")
    variant_id: VariantId | None = Field(
        None, description="Owning variant, null for question-level rows"
    )


class AssignmentTranslationFields(BaseSchema):
    """Assignment-level source fields with their translations."""

    name: str | None = Field(None, description="Source name")
    introduction: str | None = Field(None, description="Source introduction")
    instructions: str | None = Field(None, description="Source instructions")
    grading_criteria_overview: str | None = Field(
        None, description="Source grading-criteria overview"
    )
    translated_name: str | None = Field(None, description="Translated name")
    translated_introduction: str | None = Field(
        None, description="Translated introduction"
    )
    translated_instructions: str | None = Field(
        None, description="Translated instructions"
    )
    translated_grading_criteria_overview: str | None = Field(
        None, description="Translated grading-criteria overview"
    )


class AssignmentTranslation(AssignmentTranslationFields):
    """Persisted assignment translation, one row per language."""

    id: TranslationId = Field(..., description="Translation identifier")
    assignment_id: AssignmentId = Field(..., description="Owning assignment")
    language_code: LanguageCode = Field(..., description="Target language code")


ASSIGNMENT_TRANSLATABLE_FIELDS = (
    "name",
    "introduction",
    "instructions",
    "grading_criteria_overview",
)


class AssignmentUpdate(AssignmentSettingsFields):
    """Partial assignment update; only explicitly set fields are written."""

    language_code: LanguageCode | None = Field(
        None, description="Language detected from the introduction"
    )
    published: bool | None = Field(None, description="Published flag")
    question_order: list[QuestionId] | None = Field(
        None, description="Canonical question ordering"
    )
