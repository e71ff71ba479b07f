"""Language-model backed collaborators for the publish pipeline."""

from __future__ import annotations

import json

from pydantic_ai import Agent
from pydantic_ai.models import Model
from pydantic_ai.settings import ModelSettings

from folio_core.ports.collaborators import (
    GradingContextLinkerProtocol,
    LanguageDetectorProtocol,
    ModerationGateProtocol,
    TranslationProviderProtocol,
)
from folio_schemas.assignments import Choice, Question
from folio_schemas.llm import (
    DetectedLanguage,
    GradingContextLinks,
    ModerationVerdict,
    TranslatedChoices,
)
from folio_schemas.primitives import UNKNOWN_LANGUAGE, LanguageCode, QuestionId
from folio_schemas.translation import TranslationContext

TRANSLATE_TEXT_INSTRUCTIONS = (
    "You translate educational assessment content. Translate the user's text "
    "into the requested language. Preserve markdown, HTML tags, code, numbers "
    "and placeholders exactly. Reply with the translation only."
)

TRANSLATE_CHOICES_INSTRUCTIONS = (
    "You translate answer choices of educational assessments. Translate every "
    "choice text and its feedback into the requested language. Return exactly "
    "one entry per input choice, in the same order. Do not reorder, merge or "
    "drop choices."
)

DETECT_LANGUAGE_INSTRUCTIONS = (
    "Identify the language of the user's text. Answer with the lowercase ISO "
    "639-1 code, for example 'en' or 'fr'. Answer 'unknown' when the text has "
    "no identifiable language."
)

MODERATION_INSTRUCTIONS = (
    "You review content written by teachers for an assessment platform. Allow "
    "legitimate educational or technical material, including security and "
    "programming topics. Reject only content that is hateful, sexual, violent "
    "or otherwise unsafe for learners."
)

GRADING_CONTEXT_INSTRUCTIONS = (
    "You are an assessment designer identifying contextual relationships "
    "between questions of an assignment. A question depends on another when "
    "answering or grading it correctly requires the other question's content. "
    "Return one entry per question listing the ids it depends on. Only use ids "
    "from the input and never list a question as its own context."
)


class LlmTranslationProvider(TranslationProviderProtocol):
    """Translation provider backed by a pydantic-ai agent."""

    def __init__(
        self, model: Model | str, model_settings: ModelSettings | None = None
    ) -> None:
        """Initialize the provider.

        Args:
            model: Model instance or model name.
            model_settings: Optional per-request settings.
        """
        self._model_settings = model_settings
        self._text_agent = Agent(
            model, output_type=str, instructions=TRANSLATE_TEXT_INSTRUCTIONS
        )
        self._choices_agent = Agent(
            model,
            output_type=TranslatedChoices,
            instructions=TRANSLATE_CHOICES_INSTRUCTIONS,
        )

    async def translate_text(
        self, text: str, target_language: LanguageCode, context: TranslationContext
    ) -> str:
        """Translate a text into the target language.

        Returns:
            str: Translated text.
        """
        prompt = _build_translation_prompt(text, target_language, context)
        result = await self._text_agent.run(
            prompt, model_settings=self._model_settings
        )
        return result.output.strip()

    async def translate_choices(
        self,
        choices: list[Choice],
        target_language: LanguageCode,
        context: TranslationContext,
    ) -> list[Choice]:
        """Translate choice texts and feedback into the target language.

        Scoring attributes are copied from the source choices by position.

        Returns:
            list[Choice]: Translated choices as returned by the model.
        """
        payload = json.dumps(
            [
                {"choice": choice.choice, "feedback": choice.feedback}
                for choice in choices
            ],
            ensure_ascii=False,
        )
        prompt = _build_translation_prompt(payload, target_language, context)
        result = await self._choices_agent.run(
            prompt, model_settings=self._model_settings
        )
        translated: list[Choice] = []
        for index, item in enumerate(result.output.choices):
            source = choices[index] if index < len(choices) else None
            translated.append(
                Choice(
                    choice=item.choice,
                    feedback=item.feedback,
                    is_correct=source.is_correct if source else False,
                    points=source.points if source else 0,
                )
            )
        return translated


class LlmLanguageDetector(LanguageDetectorProtocol):
    """Language detector backed by a pydantic-ai agent."""

    def __init__(
        self, model: Model | str, model_settings: ModelSettings | None = None
    ) -> None:
        """Initialize the detector."""
        self._model_settings = model_settings
        self._agent = Agent(
            model,
            output_type=DetectedLanguage,
            instructions=DETECT_LANGUAGE_INSTRUCTIONS,
        )

    async def detect(self, text: str) -> str:
        """Detect the language of a text.

        Returns:
            str: Lowercase language code, or "unknown".
        """
        if not text.strip():
            return UNKNOWN_LANGUAGE
        result = await self._agent.run(text, model_settings=self._model_settings)
        code = result.output.language_code.strip().lower()
        return code or UNKNOWN_LANGUAGE


class LlmModerationGate(ModerationGateProtocol):
    """Moderation gate backed by a pydantic-ai agent."""

    def __init__(
        self, model: Model | str, model_settings: ModelSettings | None = None
    ) -> None:
        """Initialize the moderation gate."""
        self._model_settings = model_settings
        self._agent = Agent(
            model,
            output_type=ModerationVerdict,
            instructions=MODERATION_INSTRUCTIONS,
        )

    async def validate(self, content: str) -> bool:
        """Return True when the content is acceptable.

        Returns:
            bool: Moderation decision. Blank content is always accepted.
        """
        if not content.strip():
            return True
        result = await self._agent.run(content, model_settings=self._model_settings)
        return result.output.allowed


class LlmGradingContextLinker(GradingContextLinkerProtocol):
    """Grading context linker backed by a pydantic-ai agent."""

    def __init__(
        self, model: Model | str, model_settings: ModelSettings | None = None
    ) -> None:
        """Initialize the linker."""
        self._model_settings = model_settings
        self._agent = Agent(
            model,
            output_type=GradingContextLinks,
            instructions=GRADING_CONTEXT_INSTRUCTIONS,
        )

    async def compute(
        self, questions: list[Question]
    ) -> dict[QuestionId, list[QuestionId]]:
        """Map question ids to the ids of questions they depend on.

        Links naming unknown questions or the question itself are dropped.

        Returns:
            dict[QuestionId, list[QuestionId]]: Links for every input question.
        """
        if not questions:
            return {}
        payload = json.dumps(
            [
                {"id": question.id, "question": question.question}
                for question in questions
            ],
            ensure_ascii=False,
        )
        result = await self._agent.run(payload, model_settings=self._model_settings)
        known = {question.id for question in questions}
        links: dict[QuestionId, list[QuestionId]] = {
            question.id: [] for question in questions
        }
        for link in result.output.links:
            if link.question_id not in known:
                continue
            links[link.question_id] = [
                linked
                for linked in dict.fromkeys(link.context_question_ids)
                if linked in known and linked != link.question_id
            ]
        return links


def _build_translation_prompt(
    text: str, target_language: LanguageCode, context: TranslationContext
) -> str:
    lines = [
        f"Target language: {target_language}",
        f"Source language: {context.source_language}",
        f"Content kind: {context.subject}",
    ]
    if context.assignment_name:
        lines.append(f"Assignment: {context.assignment_name}")
    lines.extend(["", text])
    return "\n".join(lines)
