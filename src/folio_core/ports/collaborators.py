"""Protocol definitions for the AI collaborators used while publishing."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from folio_schemas.assignments import Choice, Question
from folio_schemas.primitives import LanguageCode, QuestionId
from folio_schemas.translation import TranslationContext


@runtime_checkable
class ModerationGateProtocol(Protocol):
    """Approval check applied to changed question content."""

    async def validate(self, content: str) -> bool:
        """Return True when the content is acceptable."""
        raise NotImplementedError


@runtime_checkable
class LanguageDetectorProtocol(Protocol):
    """Detects the language of a text.

    Implementations return a language code or ``"unknown"``.
    """

    async def detect(self, text: str) -> str:
        """Detect the language of a text."""
        raise NotImplementedError


@runtime_checkable
class TranslationProviderProtocol(Protocol):
    """Machine translation of text and structured choices.

    ``translate_choices`` must return the same number of choices, in order.
    """

    async def translate_text(
        self, text: str, target_language: LanguageCode, context: TranslationContext
    ) -> str:
        """Translate a text into the target language."""
        raise NotImplementedError

    async def translate_choices(
        self,
        choices: list[Choice],
        target_language: LanguageCode,
        context: TranslationContext,
    ) -> list[Choice]:
        """Translate choice texts and feedback into the target language."""
        raise NotImplementedError


@runtime_checkable
class GradingContextLinkerProtocol(Protocol):
    """Computes which earlier questions inform grading of later ones."""

    async def compute(
        self, questions: list[Question]
    ) -> dict[QuestionId, list[QuestionId]]:
        """Map question ids to the ids of questions they depend on."""
        raise NotImplementedError
