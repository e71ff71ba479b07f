"""Publish pipeline orchestrator and job state machine."""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass, field

from folio_core.limiter import ConcurrencyLimiter
from folio_core.ports.collaborators import (
    GradingContextLinkerProtocol,
    LanguageDetectorProtocol,
    ModerationGateProtocol,
    TranslationProviderProtocol,
)
from folio_core.ports.orchestrator import (
    LogSinkProtocol,
    ProgressSinkProtocol,
    PublishError,
    PublishErrorCode,
    PublishErrorDetails,
    PublishErrorInfo,
    build_job_completed_log,
    build_job_failed_log,
    build_job_started_log,
    build_step_log,
)
from folio_core.ports.storage import (
    AssignmentStoreProtocol,
    JobStoreProtocol,
    QuestionStoreProtocol,
    StorageError,
    TranslationStoreProtocol,
)
from folio_core.ports.translation import TranslationError
from folio_core.progress import ProgressTracker
from folio_core.reconcile import ReconciliationEngine, ReconciliationResult
from folio_core.translation import TranslationEngine, TranslationSession
from folio_schemas.assignments import (
    Assignment,
    AssignmentAuthor,
    AssignmentTranslation,
    AssignmentUpdate,
    Question,
    QuestionWithVariants,
)
from folio_schemas.config import PublishConfig
from folio_schemas.events import StepEventSuffix
from folio_schemas.logs import LogEntry
from folio_schemas.primitives import (
    LANGUAGE_CODE_PATTERN,
    PUBLISH_STEP_LABELS,
    PUBLISH_STEP_ORDER,
    AssignmentId,
    JobId,
    LanguageCode,
    LogLevel,
    PublishStep,
    QuestionId,
    Timestamp,
    UserId,
    now_timestamp,
)
from folio_schemas.publish import PublishRequest, PublishResult
from folio_schemas.translation import TranslationOutcome


@dataclass(slots=True)
class PublishRunContext:
    """In-memory state of one publish run."""

    job_id: JobId
    assignment_id: AssignmentId
    user_id: UserId
    request: PublishRequest
    tracker: ProgressTracker
    session: TranslationSession
    current_step: PublishStep | None = None
    assignment: Assignment | None = None
    reconciliation: ReconciliationResult | None = None
    translation_outcomes: list[TranslationOutcome] = field(default_factory=list)
    assignment_translations: list[AssignmentTranslation] = field(
        default_factory=list
    )
    question_order: list[QuestionId] = field(default_factory=list)


class PublishOrchestrator:
    """Runs the publish steps in order and owns the job state machine.

    Jobs move ``pending -> in_progress -> completed | failed``. Steps run
    strictly in sequence; a failing step marks the job failed and stops later
    steps. Writes made by earlier steps are not rolled back.
    """

    def __init__(
        self,
        assignment_store: AssignmentStoreProtocol,
        question_store: QuestionStoreProtocol,
        translation_store: TranslationStoreProtocol,
        job_store: JobStoreProtocol,
        moderation_gate: ModerationGateProtocol,
        language_detector: LanguageDetectorProtocol,
        translation_provider: TranslationProviderProtocol,
        grading_context_linker: GradingContextLinkerProtocol,
        config: PublishConfig | None = None,
        log_sink: LogSinkProtocol | None = None,
        progress_sink: ProgressSinkProtocol | None = None,
        clock: Callable[[], Timestamp] | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            assignment_store: Store for assignments and assignment translations.
            question_store: Store for questions and variants.
            translation_store: Store for question and variant translations.
            job_store: Store for publish jobs.
            moderation_gate: Approval check for changed question text.
            language_detector: Language detection collaborator.
            translation_provider: Machine translation collaborator.
            grading_context_linker: Grading-context link collaborator.
            config: Publish configuration.
            log_sink: Optional log sink.
            progress_sink: Optional progress sink.
            clock: Optional timestamp provider.
        """
        self._assignment_store = assignment_store
        self._question_store = question_store
        self._job_store = job_store
        self._grading_context_linker = grading_context_linker
        self._config = config or PublishConfig()
        self._log_sink = log_sink
        self._progress_sink = progress_sink
        self._clock = clock or now_timestamp
        self._reconciler = ReconciliationEngine(
            question_store, moderation_gate, log_sink=log_sink, clock=self._clock
        )
        self._translator = TranslationEngine(
            translation_store,
            assignment_store,
            translation_provider,
            language_detector,
            log_sink=log_sink,
            clock=self._clock,
        )

    @property
    def config(self) -> PublishConfig:
        """Return the publish configuration."""
        return self._config

    @property
    def languages(self) -> list[LanguageCode]:
        """Return the languages every run translates into."""
        return self._config.languages.resolve_languages()

    async def check_preconditions(
        self, assignment_id: AssignmentId, request: PublishRequest
    ) -> Assignment:
        """Validate a request before any write happens.

        Args:
            assignment_id: Assignment to publish.
            request: Desired assignment state.

        Returns:
            Assignment: The persisted assignment.

        Raises:
            PublishError: If the assignment is missing or the introduction is
                empty.
        """
        assignment = await self._assignment_store.get_assignment(assignment_id)
        if assignment is None:
            raise PublishError(
                PublishErrorInfo(
                    code=PublishErrorCode.ASSIGNMENT_NOT_FOUND,
                    message=f"Assignment {assignment_id} not found",
                    details=PublishErrorDetails(assignment_id=assignment_id),
                )
            )
        introduction = request.settings.introduction
        if introduction is None or not introduction.strip():
            raise PublishError(
                PublishErrorInfo(
                    code=PublishErrorCode.PRECONDITION_FAILED,
                    message="Introduction is required to publish an assignment",
                    details=PublishErrorDetails(
                        step=PublishStep.SETTINGS,
                        assignment_id=assignment_id,
                        field="introduction",
                    ),
                )
            )
        return assignment

    async def run(
        self,
        job_id: JobId,
        assignment_id: AssignmentId,
        request: PublishRequest,
        user_id: UserId,
    ) -> PublishResult:
        """Run every publish step for an existing job.

        Preconditions are checked before the job leaves ``pending``; a failing
        precondition leaves the job untouched.

        Args:
            job_id: Pending job created for this run.
            assignment_id: Assignment to publish.
            request: Desired assignment state.
            user_id: Author requesting the publish.

        Returns:
            PublishResult: Final questions and ordering.

        Raises:
            PublishError: If the job is missing or a precondition fails.
        """
        job = await self._job_store.get_job(job_id)
        if job is None:
            raise PublishError(
                PublishErrorInfo(
                    code=PublishErrorCode.JOB_NOT_FOUND,
                    message=f"Job {job_id} not found",
                    details=PublishErrorDetails(job_id=job_id),
                )
            )
        await self.check_preconditions(assignment_id, request)

        tracker = ProgressTracker(
            job_id,
            self._job_store,
            config=self._config.progress,
            progress_sink=self._progress_sink,
            clock=self._clock,
        )
        session = TranslationSession(
            limiter=ConcurrencyLimiter(
                self._config.concurrency.max_parallel_translations
            ),
            tracker=tracker,
            job_id=job_id,
        )
        run = PublishRunContext(
            job_id=job_id,
            assignment_id=assignment_id,
            user_id=user_id,
            request=request,
            tracker=tracker,
            session=session,
        )
        await tracker.start_job()
        await self._emit_log(
            build_job_started_log(
                self._clock(),
                job_id,
                assignment_id,
                list(PUBLISH_STEP_ORDER),
                len(request.questions),
            )
        )
        try:
            for step in PUBLISH_STEP_ORDER:
                await self._run_step(run, step)
            result = await self._build_result(run)
        except Exception as exc:
            await self._fail(run, exc)
            raise
        await tracker.complete(result)
        await self._emit_log(
            build_job_completed_log(
                self._clock(), job_id, len(result.questions or [])
            )
        )
        return result

    async def _run_step(self, run: PublishRunContext, step: PublishStep) -> None:
        run.current_step = step
        if step == PublishStep.QUESTIONS and not run.request.questions:
            await self._skip_questions(run)
            return
        await run.tracker.start_step(step)
        await self._emit_step_log(
            run, step, StepEventSuffix.STARTED, "Step started", run.tracker.percentage
        )
        if step == PublishStep.SETTINGS:
            await self._run_settings(run)
        elif step == PublishStep.QUESTIONS:
            await self._run_questions(run)
        elif step == PublishStep.ASSIGNMENT_TRANSLATIONS:
            await self._run_assignment_translations(run)
        elif step == PublishStep.FINALIZE:
            await self._run_finalize(run)
        await run.tracker.complete_step(step)
        await self._emit_step_log(
            run,
            step,
            StepEventSuffix.COMPLETED,
            "Step completed",
            run.tracker.percentage,
        )
        run.current_step = None

    async def _run_settings(self, run: PublishRunContext) -> None:
        settings = run.request.settings
        detected = await self._translator.detect_language(settings.introduction or "")
        update = AssignmentUpdate(
            **settings.model_dump(exclude_unset=True),
            language_code=_as_language_code(detected),
        )
        run.assignment = await self._assignment_store.update_assignment(
            run.assignment_id, update
        )
        run.session.assignment_name = run.assignment.name
        if not await self._assignment_store.has_author(run.assignment_id, run.user_id):
            await self._assignment_store.add_author(
                AssignmentAuthor(assignment_id=run.assignment_id, user_id=run.user_id)
            )

    async def _run_questions(self, run: PublishRunContext) -> None:
        persisted = await self._question_store.list_active_questions(
            run.assignment_id
        )
        run.reconciliation = await self._reconciler.reconcile(
            run.assignment_id, persisted, run.request.questions, job_id=run.job_id
        )
        run.translation_outcomes = await self._translator.translate_questions(
            run.reconciliation.questions, self.languages, run.session
        )

    async def _skip_questions(self, run: PublishRunContext) -> None:
        # An empty desired list still retires every persisted question.
        persisted = await self._question_store.list_active_questions(
            run.assignment_id
        )
        run.reconciliation = await self._reconciler.reconcile(
            run.assignment_id, persisted, [], job_id=run.job_id
        )
        await run.tracker.skip_step(PublishStep.QUESTIONS)
        await self._emit_step_log(
            run,
            PublishStep.QUESTIONS,
            StepEventSuffix.SKIPPED,
            "Step skipped: no questions submitted",
            run.tracker.percentage,
        )
        run.current_step = None

    async def _run_assignment_translations(self, run: PublishRunContext) -> None:
        assignment = await self._require_assignment(run)
        run.assignment_translations = await self._translator.translate_assignment(
            assignment, self.languages, run.session
        )

    async def _run_finalize(self, run: PublishRunContext) -> None:
        draft_ids = [question.id for question in run.request.questions]
        order = (
            run.reconciliation.resolve_order(draft_ids)
            if run.reconciliation is not None
            else []
        )
        active = await self._ordered_active_questions(run.assignment_id, order)
        if active:
            ordered: list[Question] = [
                Question.model_validate(question.model_dump(exclude={"variants"}))
                for question in active
            ]
            links = await self._grading_context_linker.compute(ordered)
            for question in active:
                await self._question_store.set_grading_context(
                    question.id, links.get(question.id, [])
                )
        run.assignment = await self._assignment_store.update_assignment(
            run.assignment_id,
            AssignmentUpdate(question_order=order, published=True),
        )
        run.question_order = order

    async def _build_result(self, run: PublishRunContext) -> PublishResult:
        questions = await self._ordered_active_questions(
            run.assignment_id, run.question_order
        )
        return PublishResult(
            assignment_id=run.assignment_id,
            success=True,
            questions=questions,
            question_order=run.question_order,
        )

    async def _ordered_active_questions(
        self, assignment_id: AssignmentId, order: list[QuestionId]
    ) -> list[QuestionWithVariants]:
        active = await self._question_store.list_active_questions(assignment_id)
        position = {question_id: index for index, question_id in enumerate(order)}
        return sorted(
            active, key=lambda question: position.get(question.id, len(position))
        )

    async def _require_assignment(self, run: PublishRunContext) -> Assignment:
        if run.assignment is not None:
            return run.assignment
        assignment = await self._assignment_store.get_assignment(run.assignment_id)
        if assignment is None:
            raise PublishError(
                PublishErrorInfo(
                    code=PublishErrorCode.ASSIGNMENT_NOT_FOUND,
                    message=f"Assignment {run.assignment_id} not found",
                    details=PublishErrorDetails(assignment_id=run.assignment_id),
                )
            )
        return assignment

    async def _fail(self, run: PublishRunContext, exc: Exception) -> None:
        step = run.current_step
        reason = str(exc) or type(exc).__name__
        message = (
            f"Error during {PUBLISH_STEP_LABELS[step]}: {reason}"
            if step is not None
            else reason
        )
        result = PublishResult(
            assignment_id=run.assignment_id, success=False, error=reason
        )
        await run.tracker.fail(message, result)
        if step is not None:
            await self._emit_step_log(
                run,
                step,
                StepEventSuffix.FAILED,
                message,
                run.tracker.percentage,
                level=LogLevel.ERROR,
            )
        await self._emit_log(
            build_job_failed_log(
                self._clock(), run.job_id, step, message, _error_code(exc)
            )
        )

    async def _emit_step_log(
        self,
        run: PublishRunContext,
        step: PublishStep,
        suffix: StepEventSuffix,
        message: str,
        percentage: int | None,
        level: LogLevel = LogLevel.INFO,
    ) -> None:
        await self._emit_log(
            build_step_log(
                self._clock(),
                run.job_id,
                step,
                suffix,
                message,
                percentage=percentage,
                level=level,
            )
        )

    async def _emit_log(self, entry: LogEntry) -> None:
        if self._log_sink is None:
            return
        await self._log_sink.emit_log(entry)


def _as_language_code(detected: str) -> LanguageCode | None:
    if re.fullmatch(LANGUAGE_CODE_PATTERN, detected) is None:
        return None
    return detected


def _error_code(exc: Exception) -> str:
    if isinstance(exc, PublishError | TranslationError | StorageError):
        return str(exc.info.code)
    return str(PublishErrorCode.STEP_FAILED)
