"""Stub collaborators and builders shared by publish tests."""

from __future__ import annotations

import asyncio
import itertools
from collections.abc import Callable
from datetime import UTC, datetime, timedelta

from folio_core.orchestrator import PublishOrchestrator
from folio_core.ports.collaborators import (
    GradingContextLinkerProtocol,
    LanguageDetectorProtocol,
    ModerationGateProtocol,
    TranslationProviderProtocol,
)
from folio_core.service import PublishService
from folio_io.storage import InMemoryLogSink, InMemoryProgressSink, InMemoryStore
from folio_schemas.assignments import Assignment, Choice, Question
from folio_schemas.config import (
    ConcurrencyConfig,
    LanguageConfig,
    PublishConfig,
)
from folio_schemas.primitives import LanguageCode, QuestionId, Timestamp
from folio_schemas.publish import PublishRequest
from folio_schemas.translation import TranslationContext

ASSIGNMENT_ID = 1
USER_ID = "author-1"
_BASE_TIME = datetime(2026, 1, 26, 12, 0, tzinfo=UTC)


class FixedClock:
    """Deterministic clock producing increasing timestamps."""

    def __init__(self) -> None:
        self._counter = itertools.count()

    def __call__(self) -> Timestamp:
        moment = _BASE_TIME + timedelta(seconds=next(self._counter))
        return moment.isoformat().replace("+00:00", "Z")


class StubTranslationProvider(TranslationProviderProtocol):
    """Deterministic provider prefixing text with the target language."""

    def __init__(
        self,
        *,
        drop_choice: bool = False,
        empty_text: bool = False,
        delay: float = 0.0,
    ) -> None:
        self.text_calls: list[tuple[str, LanguageCode]] = []
        self.choice_calls: list[tuple[list[Choice], LanguageCode]] = []
        self.contexts: list[TranslationContext] = []
        self._drop_choice = drop_choice
        self._empty_text = empty_text
        self._delay = delay
        self.in_flight = 0
        self.peak_in_flight = 0

    async def translate_text(
        self, text: str, target_language: LanguageCode, context: TranslationContext
    ) -> str:
        self.text_calls.append((text, target_language))
        self.contexts.append(context)
        self.in_flight += 1
        self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self._delay)
        finally:
            self.in_flight -= 1
        if self._empty_text:
            return "   "
        return f"[{target_language}] {text}"

    async def translate_choices(
        self,
        choices: list[Choice],
        target_language: LanguageCode,
        context: TranslationContext,
    ) -> list[Choice]:
        self.choice_calls.append((list(choices), target_language))
        translated = [
            Choice(
                choice=f"[{target_language}] {choice.choice}",
                feedback=choice.feedback,
                is_correct=not choice.is_correct,
                points=choice.points + 100,
            )
            for choice in choices
        ]
        if self._drop_choice:
            return translated[:-1]
        return translated


class StubLanguageDetector(LanguageDetectorProtocol):
    """Detector returning configured codes, defaulting to English."""

    def __init__(
        self,
        overrides: dict[str, str] | None = None,
        default: str = "en",
        delay: float = 0.0,
    ) -> None:
        self.calls: list[str] = []
        self._overrides = overrides or {}
        self._default = default
        self._delay = delay
        self.in_flight = 0
        self.peak_in_flight = 0

    async def detect(self, text: str) -> str:
        self.calls.append(text)
        self.in_flight += 1
        self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self._delay)
        finally:
            self.in_flight -= 1
        return self._overrides.get(text, self._default)


class StubModerationGate(ModerationGateProtocol):
    """Moderation gate rejecting an explicit set of texts."""

    def __init__(self, rejected: set[str] | None = None, delay: float = 0.0) -> None:
        self.calls: list[str] = []
        self._rejected = rejected or set()
        self._delay = delay

    async def validate(self, content: str) -> bool:
        self.calls.append(content)
        await asyncio.sleep(self._delay)
        return content not in self._rejected


class StubGradingContextLinker(GradingContextLinkerProtocol):
    """Linker making every question depend on the one before it."""

    def __init__(self) -> None:
        self.calls: list[list[QuestionId]] = []

    async def compute(
        self, questions: list[Question]
    ) -> dict[QuestionId, list[QuestionId]]:
        ids = [question.id for question in questions]
        self.calls.append(ids)
        links: dict[QuestionId, list[QuestionId]] = {ids[0]: []} if ids else {}
        for previous, current in zip(ids, ids[1:]):
            links[current] = [previous]
        return links


class PublishHarness:
    """Orchestrator wired to in-memory adapters and stub collaborators."""

    def __init__(
        self,
        *,
        languages: list[str] | None = None,
        max_parallel: int = 10,
        provider: StubTranslationProvider | None = None,
        detector: StubLanguageDetector | None = None,
        moderation: StubModerationGate | None = None,
        store: InMemoryStore | None = None,
    ) -> None:
        self.clock: Callable[[], Timestamp] = FixedClock()
        self.store = store or InMemoryStore(clock=self.clock)
        self.provider = provider or StubTranslationProvider()
        self.detector = detector or StubLanguageDetector()
        self.moderation = moderation or StubModerationGate()
        self.linker = StubGradingContextLinker()
        self.log_sink = InMemoryLogSink()
        self.progress_sink = InMemoryProgressSink()
        self.config = PublishConfig(
            languages=LanguageConfig(supported_languages=languages or ["en", "fr"]),
            concurrency=ConcurrencyConfig(max_parallel_translations=max_parallel),
        )
        self.orchestrator = PublishOrchestrator(
            assignment_store=self.store,
            question_store=self.store,
            translation_store=self.store,
            job_store=self.store,
            moderation_gate=self.moderation,
            language_detector=self.detector,
            translation_provider=self.provider,
            grading_context_linker=self.linker,
            config=self.config,
            log_sink=self.log_sink,
            progress_sink=self.progress_sink,
            clock=self.clock,
        )
        self.service = PublishService(
            self.orchestrator, self.store, log_sink=self.log_sink, clock=self.clock
        )

    def seed_assignment(self, **fields: object) -> Assignment:
        """Insert the assignment under test."""
        assignment = Assignment.model_validate(
            {"id": ASSIGNMENT_ID, "name": "Cells", **fields}
        )
        self.store.put_assignment(assignment)
        return assignment


def build_request(
    questions: list[dict[str, object]] | None = None,
    **settings: object,
) -> PublishRequest:
    """Build a publish request with a valid introduction by default.

    Returns:
        PublishRequest: Validated request.
    """
    payload_settings: dict[str, object] = {
        "name": "Cells",
        "introduction": "Learn about cells",
        **settings,
    }
    return PublishRequest.model_validate(
        {"settings": payload_settings, "questions": questions or []}
    )


def text_question(
    draft_id: int | str, text: str, **fields: object
) -> dict[str, object]:
    """Build a text question draft payload.

    Returns:
        dict[str, object]: Question draft payload.
    """
    return {
        "id": draft_id,
        "question": text,
        "type": "TEXT",
        "total_points": 5,
        **fields,
    }


def choice_question(
    draft_id: int | str, text: str, choices: list[str], **fields: object
) -> dict[str, object]:
    """Build a single-correct question draft whose first choice is correct.

    Returns:
        dict[str, object]: Question draft payload.
    """
    return {
        "id": draft_id,
        "question": text,
        "type": "SINGLE_CORRECT",
        "total_points": 1,
        "choices": [
            {
                "choice": choice,
                "is_correct": index == 0,
                "points": 1 if index == 0 else 0,
            }
            for index, choice in enumerate(choices)
        ],
        **fields,
    }
