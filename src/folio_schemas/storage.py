"""Storage snapshot schemas."""

from __future__ import annotations

from pydantic import Field

from folio_schemas.assignments import (
    Assignment,
    AssignmentAuthor,
    AssignmentTranslation,
    Question,
    Translation,
    Variant,
)
from folio_schemas.base import BaseSchema
from folio_schemas.jobs import Job


class StoreSnapshot(BaseSchema):
    """Complete serializable content of a store."""

    assignments: list[Assignment] = Field(default_factory=list)
    authors: list[AssignmentAuthor] = Field(default_factory=list)
    questions: list[Question] = Field(default_factory=list)
    variants: list[Variant] = Field(default_factory=list)
    translations: list[Translation] = Field(default_factory=list)
    assignment_translations: list[AssignmentTranslation] = Field(
        default_factory=list
    )
    jobs: list[Job] = Field(default_factory=list)
