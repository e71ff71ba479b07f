"""Primitive types and enums shared across folio schemas."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum
from typing import Annotated

from pydantic import Field

ISO_8601_PATTERN = (
    r"^\d{4}-\d{2}-\d{2}T"
    r"\d{2}:\d{2}:\d{2}"
    r"(?:\.\d+)?"
    r"(?:Z|[+-]\d{2}:\d{2})$"
)
LANGUAGE_CODE_PATTERN = r"^[a-z]{2}(?:-[A-Z]{2})?$"
EVENT_NAME_PATTERN = r"^[a-z][a-z0-9_]*$"
PROGRESS_MESSAGE_MAX_LENGTH = 255

# Sentinel returned by language detectors that cannot classify a text.
UNKNOWN_LANGUAGE = "unknown"

type EntityId = Annotated[int, Field(ge=1)]
type AssignmentId = EntityId
type QuestionId = EntityId
type VariantId = EntityId
type TranslationId = EntityId
type JobId = EntityId
type UserId = Annotated[str, Field(min_length=1)]
# Caller-chosen ids: persisted integers or provisional values for new entities.
type DraftId = int | str
type Timestamp = Annotated[str, Field(pattern=ISO_8601_PATTERN)]
type LanguageCode = Annotated[str, Field(pattern=LANGUAGE_CODE_PATTERN)]
type EventName = Annotated[str, Field(pattern=EVENT_NAME_PATTERN)]

type JsonPrimitive = str | int | float | bool | None
type JsonValue = JsonPrimitive | list["JsonValue"] | dict[str, "JsonValue"]


def now_timestamp() -> Timestamp:
    """Return the current UTC time as an ISO-8601 string ending in Z."""
    return datetime.now(tz=UTC).isoformat().replace("+00:00", "Z")


class JobStatus(StrEnum):
    """Publish job status values."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_JOB_STATUSES = frozenset({JobStatus.COMPLETED, JobStatus.FAILED})


class PublishStep(StrEnum):
    """Publish pipeline step names."""

    SETTINGS = "settings"
    QUESTIONS = "questions"
    ASSIGNMENT_TRANSLATIONS = "assignment_translations"
    FINALIZE = "finalize"


PUBLISH_STEP_ORDER = [
    PublishStep.SETTINGS,
    PublishStep.QUESTIONS,
    PublishStep.ASSIGNMENT_TRANSLATIONS,
    PublishStep.FINALIZE,
]

PUBLISH_STEP_LABELS: dict[PublishStep, str] = {
    PublishStep.SETTINGS: "Updating assignment settings",
    PublishStep.QUESTIONS: "Processing questions",
    PublishStep.ASSIGNMENT_TRANSLATIONS: "Translating assignment",
    PublishStep.FINALIZE: "Finalizing assignment",
}


class QuestionType(StrEnum):
    """Closed set of question types."""

    TEXT = "TEXT"
    EMPTY = "EMPTY"
    SINGLE_CORRECT = "SINGLE_CORRECT"
    MULTIPLE_CORRECT = "MULTIPLE_CORRECT"
    TRUE_FALSE = "TRUE_FALSE"
    URL = "URL"
    UPLOAD = "UPLOAD"
    CODE = "CODE"
    LINK_FILE = "LINK_FILE"


CHOICE_QUESTION_TYPES = frozenset(
    {QuestionType.SINGLE_CORRECT, QuestionType.MULTIPLE_CORRECT}
)


class ResponseType(StrEnum):
    """Expected learner response formats."""

    CODE = "CODE"
    ESSAY = "ESSAY"
    REPORT = "REPORT"
    PRESENTATION = "PRESENTATION"
    IMAGES = "IMAGES"
    VIDEO = "VIDEO"
    AUDIO = "AUDIO"
    REPO = "REPO"
    SPREADSHEET = "SPREADSHEET"
    LIVE_RECORDING = "LIVE_RECORDING"
    OTHER = "OTHER"


class VariantType(StrEnum):
    """Kinds of question variants."""

    REWORDED = "REWORDED"
    REPHRASED = "REPHRASED"


class ScoringType(StrEnum):
    """Scoring strategies for questions and variants."""

    CRITERIA_BASED = "CRITERIA_BASED"
    LOSS_PER_MISTAKE = "LOSS_PER_MISTAKE"
    AI_GRADED = "AI_GRADED"


class QuestionDisplay(StrEnum):
    """How questions are paged for learners."""

    ONE_PER_PAGE = "ONE_PER_PAGE"
    ALL_PER_PAGE = "ALL_PER_PAGE"


class DisplayOrder(StrEnum):
    """Question ordering for learners."""

    DEFINED = "DEFINED"
    RANDOM = "RANDOM"


class LogLevel(StrEnum):
    """Log level values for JSONL logs."""

    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"


class LogSinkType(StrEnum):
    """Supported log sink types."""

    CONSOLE = "console"
    FILE = "file"
    NOOP = "noop"
