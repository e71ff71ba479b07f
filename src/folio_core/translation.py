"""Translation of questions, variants and assignment fields."""

from __future__ import annotations

import asyncio
import json
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from folio_core.limiter import ConcurrencyLimiter, gather_fail_fast
from folio_core.ports.collaborators import (
    LanguageDetectorProtocol,
    TranslationProviderProtocol,
)
from folio_core.ports.orchestrator import LogSinkProtocol, build_event_log
from folio_core.ports.storage import (
    AssignmentStoreProtocol,
    TranslationStoreProtocol,
)
from folio_core.ports.translation import (
    TranslationError,
    TranslationErrorCode,
    TranslationErrorDetails,
    TranslationErrorInfo,
)
from folio_core.progress import ProgressTracker
from folio_core.reconcile import normalize_text
from folio_schemas.assignments import (
    ASSIGNMENT_TRANSLATABLE_FIELDS,
    Assignment,
    AssignmentTranslation,
    AssignmentTranslationFields,
    Choice,
    QuestionWithVariants,
    Translation,
    TranslationContent,
)
from folio_schemas.events import TranslationEvent, TranslationSkippedData
from folio_schemas.primitives import (
    UNKNOWN_LANGUAGE,
    JobId,
    JsonValue,
    LanguageCode,
    LogLevel,
    PublishStep,
    QuestionId,
    Timestamp,
    VariantId,
    now_timestamp,
)
from folio_schemas.translation import (
    TranslationContext,
    TranslationOutcome,
    TranslationOutcomeKind,
    TranslationSubject,
)

type ContentKey = tuple[str, str, str | None]

_ASSIGNMENT_FIELD_SUBJECTS = {
    "name": TranslationSubject.ASSIGNMENT_NAME,
    "introduction": TranslationSubject.ASSIGNMENT_INTRODUCTION,
    "instructions": TranslationSubject.ASSIGNMENT_INSTRUCTIONS,
    "grading_criteria_overview": TranslationSubject.ASSIGNMENT_GRADING_CRITERIA,
}


def choices_key(choices: list[Choice] | None) -> str | None:
    """Serialize choices into a canonical comparison key.

    Choice and feedback text are normalized like source text.

    Returns:
        str | None: Canonical JSON, or None when there are no choices.
    """
    if not choices:
        return None
    payload = [
        choice.model_copy(
            update={
                "choice": normalize_text(choice.choice),
                "feedback": normalize_text(choice.feedback or "") or None,
            }
        ).model_dump(mode="json")
        for choice in choices
    ]
    return json.dumps(payload, sort_keys=True, ensure_ascii=False)


def same_language(left: str, right: str) -> bool:
    """Compare language codes case-insensitively.

    Returns:
        bool: True when both codes name the same language.
    """
    return left.casefold() == right.casefold()


@dataclass(frozen=True, slots=True)
class TranslationUnit:
    """One (entity, target language) pair to resolve."""

    question_id: QuestionId
    variant_id: VariantId | None
    subject: TranslationSubject
    text: str
    choices: list[Choice] | None
    source_language: str
    language_code: LanguageCode

    @property
    def key(self) -> ContentKey:
        """Return the content key shared by identical units."""
        return (self.language_code, self.text, choices_key(self.choices))


@dataclass(slots=True)
class TranslationSession:
    """Per-run state shared by concurrent translation units.

    Identical content is sent to the provider once per session; later units
    with the same content await the first unit's result.
    """

    limiter: ConcurrencyLimiter
    tracker: ProgressTracker | None = None
    job_id: JobId | None = None
    assignment_name: str | None = None
    provider_calls: int = 0
    _inflight: dict[ContentKey, asyncio.Future[TranslationContent]] = field(
        default_factory=dict
    )

    async def share(
        self,
        key: ContentKey,
        factory: Callable[[], Awaitable[TranslationContent]],
    ) -> tuple[TranslationContent, bool]:
        """Run a provider call once per content key.

        Args:
            key: Content key of the unit.
            factory: Coroutine factory performing the provider call.

        Returns:
            tuple[TranslationContent, bool]: Content, and whether it was produced
            by another unit.
        """
        pending = self._inflight.get(key)
        if pending is not None:
            return await asyncio.shield(pending), True
        future: asyncio.Future[TranslationContent] = (
            asyncio.get_running_loop().create_future()
        )
        self._inflight[key] = future
        try:
            content = await factory()
        except asyncio.CancelledError:
            future.cancel()
            raise
        except Exception as exc:
            future.set_exception(exc)
            # Mark retrieved; the error is re-raised to this unit's caller.
            future.exception()
            raise
        future.set_result(content)
        return content, False


@dataclass(frozen=True, slots=True)
class _SourceEntity:
    question_id: QuestionId
    variant_id: VariantId | None
    subject: TranslationSubject
    text: str
    choices: list[Choice] | None


class TranslationEngine:
    """Resolves translations with reuse and identity shortcuts."""

    def __init__(
        self,
        translation_store: TranslationStoreProtocol,
        assignment_store: AssignmentStoreProtocol,
        provider: TranslationProviderProtocol,
        detector: LanguageDetectorProtocol,
        log_sink: LogSinkProtocol | None = None,
        clock: Callable[[], Timestamp] | None = None,
    ) -> None:
        """Initialize the engine.

        Args:
            translation_store: Store for question and variant translation rows.
            assignment_store: Store for assignment translation rows.
            provider: Machine translation collaborator.
            detector: Language detection collaborator.
            log_sink: Optional sink for skip and reuse events.
            clock: Optional timestamp provider.
        """
        self._translation_store = translation_store
        self._assignment_store = assignment_store
        self._provider = provider
        self._detector = detector
        self._log_sink = log_sink
        self._clock = clock or now_timestamp

    async def detect_language(self, text: str) -> str:
        """Detect the language of a text, mapping blanks to unknown.

        Returns:
            str: Language code or ``"unknown"``.
        """
        normalized = normalize_text(text)
        if not normalized:
            return UNKNOWN_LANGUAGE
        detected = normalize_text(await self._detector.detect(normalized))
        return detected or UNKNOWN_LANGUAGE

    async def translate_questions(
        self,
        questions: list[QuestionWithVariants],
        languages: list[LanguageCode],
        session: TranslationSession,
    ) -> list[TranslationOutcome]:
        """Translate every question and variant into every language.

        The source language is detected once per entity. Detections and units
        both hold a session limiter slot; units report completion to the session
        tracker, and the first failing unit fails the whole batch.

        Args:
            questions: Active questions with their active variants.
            languages: Target language codes.
            session: Per-run translation state.

        Returns:
            list[TranslationOutcome]: One outcome per (entity, language) pair.
        """
        entities = _collect_entities(questions)
        sources = await gather_fail_fast(
            [
                lambda entity=entity: session.limiter.run(
                    lambda: self.detect_language(entity.text)
                )
                for entity in entities
            ]
        )
        units = [
            TranslationUnit(
                question_id=entity.question_id,
                variant_id=entity.variant_id,
                subject=entity.subject,
                text=normalize_text(entity.text),
                choices=entity.choices,
                source_language=source,
                language_code=language,
            )
            for entity, source in zip(entities, sources, strict=True)
            for language in languages
        ]
        if session.tracker is not None:
            await session.tracker.begin_translations(len(units))
        return await gather_fail_fast(
            [lambda unit=unit: self._run_unit(unit, session) for unit in units]
        )

    async def translate_unit(
        self, unit: TranslationUnit, session: TranslationSession
    ) -> TranslationOutcome:
        """Resolve a single unit without holding a limiter slot.

        Args:
            unit: Unit to resolve.
            session: Per-run translation state.

        Returns:
            TranslationOutcome: How the unit was resolved.
        """
        if unit.source_language == UNKNOWN_LANGUAGE:
            await self._log_skipped(unit, session, "source language unknown")
            return _outcome(unit, TranslationOutcomeKind.SKIPPED_UNKNOWN)

        reusable = await self._translation_store.find_translation(
            unit.language_code, unit.text, unit.choices
        )
        if reusable is not None:
            owned = await self._translation_store.get_translation(
                unit.question_id, unit.variant_id, unit.language_code
            )
            if owned is not None and _same_source(owned, unit):
                return _outcome(
                    unit, TranslationOutcomeKind.ALREADY_PRESENT, owned.id
                )
            row = await self._persist(unit, _clone_content(reusable, unit))
            await self._log_reused(unit, session, reusable.id)
            return _outcome(unit, TranslationOutcomeKind.REUSED, row.id)

        if same_language(unit.source_language, unit.language_code):
            return _outcome(unit, TranslationOutcomeKind.IDENTITY)

        content, shared = await session.share(
            unit.key, lambda: self._call_provider(unit, session)
        )
        row = await self._persist(unit, content)
        kind = (
            TranslationOutcomeKind.REUSED
            if shared
            else TranslationOutcomeKind.TRANSLATED
        )
        return _outcome(unit, kind, row.id)

    async def translate_assignment(
        self,
        assignment: Assignment,
        languages: list[LanguageCode],
        session: TranslationSession,
    ) -> list[AssignmentTranslation]:
        """Create or update assignment translation rows per language.

        Only fields whose source text changed since the stored row are sent to
        the provider. The assignment's own language is skipped, and so is every
        language when the assignment language is unknown.

        Args:
            assignment: Assignment after the settings step.
            languages: Target language codes.
            session: Per-run translation state.

        Returns:
            list[AssignmentTranslation]: Rows written, in language order.
        """
        source_language = assignment.language_code
        if source_language is None:
            await self._emit_log(
                session.job_id,
                TranslationEvent.SKIPPED,
                "Assignment translation skipped: source language unknown",
                {"assignment_id": assignment.id},
                level=LogLevel.WARN,
            )
            return []
        targets = [
            language
            for language in languages
            if not same_language(language, source_language)
        ]
        rows = await gather_fail_fast(
            [
                lambda language=language: session.limiter.run(
                    lambda: self._translate_assignment_language(
                        assignment, source_language, language, session
                    )
                )
                for language in targets
            ]
        )
        return [row for row in rows if row is not None]

    async def _run_unit(
        self, unit: TranslationUnit, session: TranslationSession
    ) -> TranslationOutcome:
        async with session.limiter.slot():
            outcome = await self.translate_unit(unit, session)
        if session.tracker is not None:
            await session.tracker.translation_completed(PublishStep.QUESTIONS)
        return outcome

    async def _call_provider(
        self, unit: TranslationUnit, session: TranslationSession
    ) -> TranslationContent:
        session.provider_calls += 1
        context = TranslationContext(
            subject=unit.subject,
            source_language=unit.source_language,
            assignment_name=session.assignment_name,
        )
        translated_text = await self._provider.translate_text(
            unit.text, unit.language_code, context
        )
        if not translated_text.strip():
            raise TranslationError(
                TranslationErrorInfo(
                    code=TranslationErrorCode.EMPTY_TRANSLATION,
                    message=(
                        f"Provider returned an empty translation for question "
                        f"{unit.question_id} ({unit.language_code})"
                    ),
                    details=_error_details(unit),
                )
            )
        translated_choices: list[Choice] | None = None
        if unit.choices:
            returned = await self._provider.translate_choices(
                unit.choices,
                unit.language_code,
                context.model_copy(update={"subject": TranslationSubject.CHOICES}),
            )
            if len(returned) != len(unit.choices):
                raise TranslationError(
                    TranslationErrorInfo(
                        code=TranslationErrorCode.CHOICE_COUNT_MISMATCH,
                        message=(
                            f"Provider returned {len(returned)} choices for question "
                            f"{unit.question_id} ({unit.language_code}), "
                            f"expected {len(unit.choices)}"
                        ),
                        details=_error_details(
                            unit,
                            expected_count=len(unit.choices),
                            actual_count=len(returned),
                        ),
                    )
                )
            translated_choices = _merge_choices(unit.choices, returned)
        return TranslationContent(
            language_code=unit.language_code,
            untranslated_text=unit.text,
            untranslated_choices=unit.choices,
            translated_text=translated_text,
            translated_choices=translated_choices,
        )

    async def _persist(
        self, unit: TranslationUnit, content: TranslationContent
    ) -> Translation:
        return await self._translation_store.create_translation(
            unit.question_id, unit.variant_id, content
        )

    async def _translate_assignment_language(
        self,
        assignment: Assignment,
        source_language: str,
        language: LanguageCode,
        session: TranslationSession,
    ) -> AssignmentTranslation | None:
        existing = await self._assignment_store.get_assignment_translation(
            assignment.id, language
        )
        changes: dict[str, str | None] = {}
        for name in ASSIGNMENT_TRANSLATABLE_FIELDS:
            source: str | None = getattr(assignment, name)
            if existing is not None and getattr(existing, name) == source:
                continue
            changes[name] = source
            changes[f"translated_{name}"] = await self._translate_field(
                source, language, source_language, name, assignment.name
            )
        if existing is None:
            row = await self._assignment_store.create_assignment_translation(
                assignment.id, language, AssignmentTranslationFields(**changes)
            )
        elif changes:
            row = await self._assignment_store.update_assignment_translation(
                existing.id, AssignmentTranslationFields(**changes)
            )
        else:
            return existing
        await self._emit_log(
            session.job_id,
            TranslationEvent.ASSIGNMENT_UPDATED,
            "Assignment translation written",
            {
                "assignment_id": assignment.id,
                "language_code": language,
                "fields": [
                    name for name in changes if not name.startswith("translated_")
                ],
            },
        )
        return row

    async def _translate_field(
        self,
        source: str | None,
        language: LanguageCode,
        source_language: str,
        name: str,
        assignment_name: str | None,
    ) -> str | None:
        if source is None or not source.strip():
            return source
        context = TranslationContext(
            subject=_ASSIGNMENT_FIELD_SUBJECTS[name],
            source_language=source_language,
            assignment_name=assignment_name,
        )
        return await self._provider.translate_text(
            normalize_text(source), language, context
        )

    async def _log_skipped(
        self, unit: TranslationUnit, session: TranslationSession, reason: str
    ) -> None:
        data = TranslationSkippedData(
            question_id=unit.question_id,
            variant_id=unit.variant_id,
            language_code=unit.language_code,
            reason=reason,
        ).model_dump(exclude_none=True)
        await self._emit_log(
            session.job_id,
            TranslationEvent.SKIPPED,
            f"Translation skipped: {reason}",
            data,
            level=LogLevel.WARN,
        )

    async def _log_reused(
        self, unit: TranslationUnit, session: TranslationSession, source_id: int
    ) -> None:
        await self._emit_log(
            session.job_id,
            TranslationEvent.REUSED,
            "Translation reused",
            {
                "question_id": unit.question_id,
                "variant_id": unit.variant_id,
                "language_code": unit.language_code,
                "source_translation_id": source_id,
            },
            level=LogLevel.DEBUG,
        )

    async def _emit_log(
        self,
        job_id: JobId | None,
        event: TranslationEvent,
        message: str,
        data: dict[str, JsonValue],
        level: LogLevel = LogLevel.INFO,
    ) -> None:
        if self._log_sink is None:
            return
        await self._log_sink.emit_log(
            build_event_log(
                self._clock(), job_id, None, event, message, data=data, level=level
            )
        )


def _collect_entities(questions: list[QuestionWithVariants]) -> list[_SourceEntity]:
    entities: list[_SourceEntity] = []
    for question in questions:
        entities.append(
            _SourceEntity(
                question_id=question.id,
                variant_id=None,
                subject=TranslationSubject.QUESTION,
                text=question.question,
                choices=question.choices,
            )
        )
        entities.extend(
            _SourceEntity(
                question_id=question.id,
                variant_id=variant.id,
                subject=TranslationSubject.VARIANT,
                text=variant.variant_content,
                choices=variant.choices,
            )
            for variant in question.variants
        )
    return entities


def _same_source(row: Translation, unit: TranslationUnit) -> bool:
    return row.untranslated_text == unit.text and choices_key(
        row.untranslated_choices
    ) == choices_key(unit.choices)


def _clone_content(row: Translation, unit: TranslationUnit) -> TranslationContent:
    return TranslationContent(
        language_code=unit.language_code,
        untranslated_text=unit.text,
        untranslated_choices=unit.choices,
        translated_text=row.translated_text,
        translated_choices=row.translated_choices,
    )


def _merge_choices(source: list[Choice], translated: list[Choice]) -> list[Choice]:
    # Correctness and points always come from the source choice.
    return [
        original.model_copy(
            update={"choice": returned.choice, "feedback": returned.feedback}
        )
        for original, returned in zip(source, translated, strict=True)
    ]


def _outcome(
    unit: TranslationUnit,
    kind: TranslationOutcomeKind,
    translation_id: int | None = None,
) -> TranslationOutcome:
    return TranslationOutcome(
        question_id=unit.question_id,
        variant_id=unit.variant_id,
        language_code=unit.language_code,
        kind=kind,
        translation_id=translation_id,
    )


def _error_details(
    unit: TranslationUnit,
    expected_count: int | None = None,
    actual_count: int | None = None,
) -> TranslationErrorDetails:
    return TranslationErrorDetails(
        question_id=unit.question_id,
        variant_id=unit.variant_id,
        language_code=unit.language_code,
        expected_count=expected_count,
        actual_count=actual_count,
    )
