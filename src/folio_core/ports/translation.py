"""Error types raised by the translation engine."""

from __future__ import annotations

from enum import StrEnum

from pydantic import Field

from folio_schemas.base import BaseSchema
from folio_schemas.primitives import LanguageCode, QuestionId, VariantId
from folio_schemas.responses import ErrorDetails, ErrorResponse


class TranslationErrorCode(StrEnum):
    """Categorized error codes for translation failures."""

    CHOICE_COUNT_MISMATCH = "choice_count_mismatch"
    EMPTY_TRANSLATION = "empty_translation"


class TranslationErrorDetails(BaseSchema):
    """Detailed translation error context."""

    question_id: QuestionId | None = Field(None, description="Owning question")
    variant_id: VariantId | None = Field(None, description="Owning variant")
    language_code: LanguageCode | None = Field(None, description="Target language")
    expected_count: int | None = Field(None, ge=0, description="Source choice count")
    actual_count: int | None = Field(None, ge=0, description="Returned choice count")


class TranslationErrorInfo(BaseSchema):
    """Structured translation error data."""

    code: TranslationErrorCode = Field(..., description="Error code")
    message: str = Field(..., min_length=1, description="Error message")
    details: TranslationErrorDetails | None = Field(None, description="Error details")

    def to_error_response(self) -> ErrorResponse:
        """Convert translation error info to standard error response.

        Returns:
            ErrorResponse: Standard response error payload.
        """
        details: ErrorDetails | None = None
        if self.details is not None and self.details.language_code is not None:
            details = ErrorDetails(
                field="language_code", provided=self.details.language_code
            )
        return ErrorResponse(code=str(self.code), message=self.message, details=details)


class TranslationError(Exception):
    """Translation error with structured details."""

    def __init__(self, info: TranslationErrorInfo) -> None:
        """Initialize the translation error.

        Args:
            info: Structured translation error information.
        """
        super().__init__(info.message)
        self.info = info
